"""
Leakage-free historical backtests.

A run asks the candidates lookup for recently completed matches, then
replays each one strictly in fetch order: the model is asked to predict
the match as of the day before kickoff, and its pick is compared with the
real final score.

State machine (per run):
    IDLE -> FETCHING_CANDIDATES -> EVALUATING -> DONE
    any state -> CANCELLED   (cancel() is checked between candidates)
    FETCHING_CANDIDATES -> FAILED   (candidate lookup raised)

A failing candidate becomes a placeholder item (failed=True) and never
halts the batch. Results are never written to the history ledger.

Usage:
    run = simulator.start(BacktestRequest("Football", "Premier League", ("Arsenal",), 3))
    async for item in run:
        ...
    summary = summarize_backtest(run.results)
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

from probableplay.config import Settings, get_settings
from probableplay.errors import MalformedResponse
from probableplay.forecast.outcome import (
    coerce_score,
    resolve_actual_outcome,
    resolve_predicted_outcome,
)
from probableplay.forecast.probability import normalize_payload_probabilities
from probableplay.llm.extraction import extract_structured
from probableplay.llm.gemini_client import ModelQuery
from probableplay.llm.lookups import HistoricalCandidatesLookup
from probableplay.llm.prompts import BACKTEST_SYSTEM_INSTRUCTION, build_backtest_prompt
from probableplay.models import (
    BacktestCandidate,
    BacktestResultItem,
    Outcome,
    Probabilities,
    TrendPoint,
)
from probableplay.telemetry import record_backtest_item

logger = logging.getLogger(__name__)

ZERO_PROBABILITIES = Probabilities(home=0.0, draw=0.0, away=0.0)


class BacktestState(str, Enum):
    IDLE = "IDLE"
    FETCHING_CANDIDATES = "FETCHING_CANDIDATES"
    EVALUATING = "EVALUATING"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class BacktestRequest:
    sport: str
    league: str
    teams: tuple[str, ...]
    match_count: int = 3

    def __post_init__(self):
        teams = tuple(t.strip() for t in self.teams if isinstance(t, str) and t.strip())
        if not teams:
            raise ValueError("Backtest needs at least one team")
        if not self.league or not self.league.strip():
            raise ValueError("Backtest needs a league")
        object.__setattr__(self, "teams", teams)


@dataclass(frozen=True)
class BacktestSummary:
    total: int
    correct: int
    accuracy: int  # percent
    trend: tuple[TrendPoint, ...] = ()


def simulation_date(match_date: date) -> date:
    """The model reasons as of the day before kickoff."""
    return match_date - timedelta(days=1)


def clamp_match_count(count: int, maximum: int) -> int:
    return max(1, min(int(count), maximum))


def _parse_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_backtest_candidates(rows: object, limit: int) -> list[BacktestCandidate]:
    """
    Validate raw candidate rows, keeping fetch order.

    Rows missing a date, either team name or a numeric score pair are
    dropped. At most `limit` candidates are returned.
    """
    if not isinstance(rows, list):
        return []

    candidates = []
    for row in rows:
        if len(candidates) >= limit:
            break
        if not isinstance(row, dict):
            continue
        match_date = _parse_date(row.get("date"))
        home_team = row.get("homeTeam")
        away_team = row.get("awayTeam")
        home_score = coerce_score(row.get("homeScore"))
        away_score = coerce_score(row.get("awayScore"))
        if (
            match_date is None
            or not isinstance(home_team, str) or not home_team.strip()
            or not isinstance(away_team, str) or not away_team.strip()
            or home_score is None
            or away_score is None
        ):
            logger.debug(f"[BACKTEST] Dropping incomplete candidate: {row}")
            continue
        candidates.append(
            BacktestCandidate(
                match_date=match_date,
                home_team=home_team.strip(),
                away_team=away_team.strip(),
                home_score=home_score,
                away_score=away_score,
            )
        )
    return candidates


def _percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(100 * correct / total + 0.5))


def summarize_backtest(results: Sequence[BacktestResultItem]) -> BacktestSummary:
    """Totals plus cumulative accuracy after each item (label "correct/i")."""
    trend = []
    correct = 0
    for i, item in enumerate(results, start=1):
        if item.is_correct:
            correct += 1
        trend.append(TrendPoint(name=str(i), value=_percent(correct, i), label=f"{correct}/{i}"))
    return BacktestSummary(
        total=len(results),
        correct=correct,
        accuracy=_percent(correct, len(results)),
        trend=tuple(trend),
    )


class BacktestRun:
    """One backtest execution. Iterate it to drive the evaluation."""

    def __init__(self, simulator: "BacktestSimulator", request: BacktestRequest, match_count: int):
        self.request = request
        self.match_count = match_count
        self.state = BacktestState.IDLE
        self.candidates: list[BacktestCandidate] = []
        self.results: list[BacktestResultItem] = []
        self.errors = 0
        self._simulator = simulator
        self._cancel_requested = False
        self._iterator: Optional[AsyncIterator[BacktestResultItem]] = None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Stop before the next candidate; in-flight work finishes."""
        self._cancel_requested = True
        if self.state == BacktestState.IDLE:
            self.state = BacktestState.CANCELLED

    def __aiter__(self) -> AsyncIterator[BacktestResultItem]:
        if self._iterator is None:
            self._iterator = self._execute()
        return self._iterator

    async def collect(self) -> list[BacktestResultItem]:
        """Run to completion (or cancellation) and return all items."""
        async for _ in self:
            pass
        return self.results

    async def _execute(self) -> AsyncIterator[BacktestResultItem]:
        if self._cancel_requested:
            self.state = BacktestState.CANCELLED
            return

        request = self.request
        self.state = BacktestState.FETCHING_CANDIDATES
        logger.info(
            f"[BACKTEST] Fetching {self.match_count} candidates: {request.sport} / "
            f"{request.league} / {', '.join(request.teams)}"
        )
        try:
            rows = await self._simulator.candidates_lookup.fetch_candidates(
                request.sport, request.league, request.teams, self.match_count
            )
        except Exception as e:
            self.state = BacktestState.FAILED
            logger.error(f"[BACKTEST] Candidate lookup failed: {e}")
            raise

        self.candidates = parse_backtest_candidates(rows, self.match_count)
        self.state = BacktestState.EVALUATING

        for candidate in self.candidates:
            if self._cancel_requested:
                logger.info(f"[BACKTEST] Cancelled after {len(self.results)}/{len(self.candidates)}")
                self.state = BacktestState.CANCELLED
                return

            item = await self._simulator.evaluate(candidate)
            if item.failed:
                self.errors += 1
            self.results.append(item)
            yield item

        self.state = BacktestState.CANCELLED if self._cancel_requested else BacktestState.DONE
        logger.info(
            f"[BACKTEST] Finished: {len(self.results)} items, {self.errors} errors, "
            f"accuracy={summarize_backtest(self.results).accuracy}%"
        )


class BacktestSimulator:
    """Creates backtest runs over a model and a historical candidates lookup."""

    def __init__(
        self,
        model: ModelQuery,
        candidates_lookup: HistoricalCandidatesLookup,
        settings: Optional[Settings] = None,
    ):
        self.model = model
        self.candidates_lookup = candidates_lookup
        self.settings = settings or get_settings()

    def start(self, request: BacktestRequest) -> BacktestRun:
        """Fresh run for the request; nothing executes until it is iterated."""
        count = clamp_match_count(request.match_count, self.settings.BACKTEST_MAX_MATCHES)
        return BacktestRun(self, request, count)

    async def evaluate(self, candidate: BacktestCandidate) -> BacktestResultItem:
        """
        Predict one historical match without hindsight and score the pick.

        Never raises for model or parsing problems; those produce a
        placeholder item with failed=True.
        """
        actual = resolve_actual_outcome(candidate.home_score, candidate.away_score)
        sim_date = simulation_date(candidate.match_date)

        try:
            response = await self.model.query(
                build_backtest_prompt(
                    candidate.home_team, candidate.away_team, candidate.match_date, sim_date
                ),
                instructions=BACKTEST_SYSTEM_INSTRUCTION,
                temperature=self.settings.BACKTEST_TEMPERATURE,
                kind="backtest",
            )
            payload = extract_structured(response.text)
            if not isinstance(payload, dict):
                raise MalformedResponse(
                    f"Expected a JSON object, got {type(payload).__name__}", raw_text=response.text
                )
        except Exception as e:
            logger.warning(
                f"[BACKTEST] {candidate.home_team} vs {candidate.away_team} "
                f"({candidate.match_date.isoformat()}) failed: {type(e).__name__}: {e}"
            )
            record_backtest_item("failed")
            return BacktestResultItem(
                id=f"err-{uuid.uuid4().hex}",
                match_date=candidate.match_date,
                home_team=candidate.home_team,
                away_team=candidate.away_team,
                actual_home_score=candidate.home_score,
                actual_away_score=candidate.away_score,
                actual_winner=actual,
                predicted_winner=Outcome.DRAW,
                predicted_probabilities=ZERO_PROBABILITIES,
                is_correct=False,
                explanation="Error",
                failed=True,
            )

        probabilities = normalize_payload_probabilities(payload)
        predicted = resolve_predicted_outcome(probabilities)
        is_correct = predicted == actual
        record_backtest_item("correct" if is_correct else "incorrect")

        explanation = payload.get("explanation")
        return BacktestResultItem(
            id=f"bt-{uuid.uuid4().hex}",
            match_date=candidate.match_date,
            home_team=candidate.home_team,
            away_team=candidate.away_team,
            actual_home_score=candidate.home_score,
            actual_away_score=candidate.away_score,
            actual_winner=actual,
            predicted_winner=predicted,
            predicted_probabilities=probabilities,
            is_correct=is_correct,
            explanation=explanation if isinstance(explanation, str) else "",
        )
