"""
Model-backed lookup collaborators.

- MatchResultsLookup: final scores for previously predicted matches.
- HistoricalCandidatesLookup: completed matches to backtest against.
- GeminiScheduleLookup: today's fixtures.

All three ask the grounded model for a JSON array and parse it leniently:
rows that do not carry the required fields are dropped, never raised.
"""

import logging
import re
import time
import uuid
from datetime import date
from typing import Optional, Protocol, Sequence

from probableplay.config import Settings, get_settings
from probableplay.errors import MalformedResponse, UpstreamUnavailable
from probableplay.forecast.consistency import coerce_enum
from probableplay.forecast.outcome import coerce_score, resolve_actual_outcome
from probableplay.llm.extraction import extract_structured
from probableplay.llm.gemini_client import ModelQuery
from probableplay.llm.prompts import (
    SCHEDULE_SYSTEM_INSTRUCTION,
    build_candidates_prompt,
    build_results_prompt,
    build_schedule_prompt,
)
from probableplay.models import Match, MatchResult, Outcome

logger = logging.getLogger(__name__)

_SLUG_JUNK = re.compile(r"[^a-z0-9]")


class MatchResultsLookup(Protocol):
    async def fetch_results(self, matches: Sequence[Match]) -> dict[str, MatchResult]:
        ...


class HistoricalCandidatesLookup(Protocol):
    async def fetch_candidates(
        self,
        sport: str,
        league: str,
        teams: Sequence[str],
        count: int,
    ) -> list[dict]:
        ...


def parse_match_results(rows: object) -> dict[str, MatchResult]:
    """
    Keep only rows with an id, a finished flag and two numeric scores.

    The winner is recomputed from the scores; the model's own "winner"
    field is used only when it agrees, so the two can never disagree.
    """
    results: dict[str, MatchResult] = {}
    if not isinstance(rows, list):
        return results

    for row in rows:
        if not isinstance(row, dict) or not row.get("id") or not row.get("isFinished"):
            continue
        home_score = coerce_score(row.get("homeScore"))
        away_score = coerce_score(row.get("awayScore"))
        if home_score is None or away_score is None:
            logger.debug(f"Dropping result row without numeric scores: {row}")
            continue

        winner = resolve_actual_outcome(home_score, away_score)
        reported = coerce_enum(row.get("winner"), Outcome, winner)
        if reported != winner:
            logger.warning(
                f"Result {row['id']}: model winner {row.get('winner')!r} "
                f"contradicts score {home_score}-{away_score}, using {winner.value}"
            )

        results[str(row["id"])] = MatchResult(
            home_score=home_score,
            away_score=away_score,
            winner=winner,
            is_finished=True,
        )
    return results


def match_slug(home_team: str, away_team: str, start_time: str) -> str:
    """Deterministic fixture id: lowercase alphanumerics of home-away-start."""
    return _SLUG_JUNK.sub("", f"{home_team}-{away_team}-{start_time}".lower())


class GeminiMatchResultsLookup:
    """Ask the grounded model for final scores. Failures yield an empty map."""

    def __init__(self, model: ModelQuery):
        self.model = model

    async def fetch_results(self, matches: Sequence[Match]) -> dict[str, MatchResult]:
        if not matches:
            return {}

        try:
            response = await self.model.query(build_results_prompt(matches), kind="results")
            rows = extract_structured(response.text)
        except (UpstreamUnavailable, MalformedResponse) as e:
            logger.warning(f"Failed to fetch results for {len(matches)} matches: {e}")
            return {}

        results = parse_match_results(rows)
        logger.info(f"Fetched {len(results)} finished results for {len(matches)} matches")
        return results


class GeminiCandidatesLookup:
    """Completed historical matches for backtests.

    Upstream failures propagate (the run fails); an answer without a
    usable array is an empty candidate list.
    """

    def __init__(self, model: ModelQuery, settings: Optional[Settings] = None):
        self.model = model
        self.max_matches = (settings or get_settings()).BACKTEST_MAX_MATCHES

    async def fetch_candidates(
        self,
        sport: str,
        league: str,
        teams: Sequence[str],
        count: int,
    ) -> list[dict]:
        safe_count = max(1, min(count, self.max_matches))
        response = await self.model.query(
            build_candidates_prompt(sport, league, teams, safe_count),
            kind="candidates",
        )
        try:
            rows = extract_structured(response.text)
        except MalformedResponse as e:
            logger.warning(f"[BACKTEST] Unreadable candidate list: {e}")
            return []
        return rows if isinstance(rows, list) else []


class GeminiScheduleLookup:
    """Today's fixtures as Match objects. Failures yield an empty list."""

    def __init__(self, model: ModelQuery):
        self.model = model

    async def fetch_todays_matches(self, today: Optional[date] = None) -> list[Match]:
        today = today or date.today()
        try:
            response = await self.model.query(
                build_schedule_prompt(today),
                instructions=SCHEDULE_SYSTEM_INSTRUCTION,
                kind="schedule",
            )
            rows = extract_structured(response.text)
        except (UpstreamUnavailable, MalformedResponse) as e:
            logger.warning(f"Failed to fetch schedule for {today.isoformat()}: {e}")
            return []

        if not isinstance(rows, list):
            return []

        matches = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("homeTeam") or not row.get("awayTeam"):
                continue
            start_time = str(row.get("startTime") or "")
            slug = match_slug(row["homeTeam"], row["awayTeam"], start_time)
            matches.append(
                Match(
                    id=slug or f"gm-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}",
                    sport=str(row.get("sport") or ""),
                    league=str(row.get("league") or ""),
                    home_team=str(row["homeTeam"]),
                    away_team=str(row["awayTeam"]),
                    start_time=start_time,
                    status="Scheduled",
                )
            )
        return matches
