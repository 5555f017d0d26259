"""
Consistency rules for detailed (high precision) forecasts.

Models contradict themselves: a 0-0 score line with a list of goal
scorers, "Header/Shot" as a scoring method, "about 40 percent" as a
likelihood. `enforce_forecast_consistency` repairs a parsed forecast so its
fields agree. It is pure, total and idempotent; every rule is independent:

- predicted score "0-0" (whitespace-trimmed) -> no scorers
- scorer method outside ScoringMethod -> Shot
- percentage fields -> canonical "NN%" (0..100), unparsable -> "0%"
- half-time / second-half winner outside Outcome -> Draw
- confidence outside Confidence -> Medium
"""

import dataclasses
import logging
import math
import re
from enum import Enum
from typing import Any, Optional, TypeVar

from probableplay.models import (
    Confidence,
    DetailedForecast,
    Outcome,
    ScorerPrediction,
    ScoringMethod,
    ScoringMethodProbabilities,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

GOALLESS_SCORE = "0-0"
ZERO_PERCENT = "0%"

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_ENUM_KEY_JUNK = re.compile(r"[\s_\-]+")


def _enum_key(value: str) -> str:
    return _ENUM_KEY_JUNK.sub("", value).lower()


def coerce_enum(value: Any, enum_cls: type[E], default: E) -> E:
    """Map a raw value onto enum_cls by case/spacing-insensitive value match."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = _enum_key(value)
        for member in enum_cls:
            if _enum_key(member.value) == key:
                return member
    return default


def canonical_percent(value: Any) -> str:
    """
    Canonical integer-percent string for a raw percentage.

    "45%" -> "45%", "12.5 %" -> "13%", 0.3 -> "0%", "1+ (30%)" -> "1%",
    None / "N/A" -> "0%". Values are clamped to 0..100.
    """
    if isinstance(value, bool) or value is None:
        return ZERO_PERCENT
    if isinstance(value, (int, float)):
        number = float(value)
        if math.isnan(number):
            return ZERO_PERCENT
    elif isinstance(value, str):
        found = _NUMBER.search(value)
        if not found:
            return ZERO_PERCENT
        number = float(found.group(0))
    else:
        return ZERO_PERCENT

    number = min(100.0, max(0.0, number))
    return f"{int(math.floor(number + 0.5))}%"


def is_goalless(predicted_score: Optional[str]) -> bool:
    return isinstance(predicted_score, str) and predicted_score.strip() == GOALLESS_SCORE


def _enforce_scorer(scorer: ScorerPrediction) -> ScorerPrediction:
    return dataclasses.replace(
        scorer,
        method=coerce_enum(scorer.method, ScoringMethod, ScoringMethod.SHOT),
        likelihood=canonical_percent(scorer.likelihood),
    )


def _enforce_method_probabilities(
    probs: ScoringMethodProbabilities,
) -> ScoringMethodProbabilities:
    return ScoringMethodProbabilities(
        penalty=canonical_percent(probs.penalty),
        free_kick=canonical_percent(probs.free_kick),
        corner_header=canonical_percent(probs.corner_header),
        own_goal=canonical_percent(probs.own_goal),
        outside_box=canonical_percent(probs.outside_box),
    )


def enforce_forecast_consistency(forecast: DetailedForecast) -> DetailedForecast:
    """Return a copy of forecast with contradictory fields repaired."""
    if is_goalless(forecast.predicted_score):
        if forecast.likely_scorers:
            logger.info(
                f"Forecast {forecast.match_id}: dropping {len(forecast.likely_scorers)} "
                f"scorers from a 0-0 prediction"
            )
        scorers: tuple[ScorerPrediction, ...] = ()
    else:
        scorers = tuple(_enforce_scorer(s) for s in forecast.likely_scorers)

    return dataclasses.replace(
        forecast,
        likely_scorers=scorers,
        scoring_method_probabilities=_enforce_method_probabilities(
            forecast.scoring_method_probabilities
        ),
        half_time_winner=coerce_enum(forecast.half_time_winner, Outcome, Outcome.DRAW),
        second_half_winner=coerce_enum(forecast.second_half_winner, Outcome, Outcome.DRAW),
        confidence=coerce_enum(forecast.confidence, Confidence, Confidence.MEDIUM),
    )


def _text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


def build_detailed_forecast(match_id: str, payload: dict) -> DetailedForecast:
    """
    Build a consistent DetailedForecast from an extracted model payload.

    Missing fields take the defaults the forecast view expects ("N/A"
    score and total goals, "Unknown" first scorer, "0 (90%)" red cards).
    """
    raw_scorers = payload.get("likelyScorers")
    scorers = []
    if isinstance(raw_scorers, list):
        for item in raw_scorers:
            if not isinstance(item, dict):
                continue
            scorers.append(
                ScorerPrediction(
                    player=_text(item.get("player"), "Unknown"),
                    team=_text(item.get("team"), ""),
                    method=item.get("method"),
                    likelihood=item.get("likelihood"),
                )
            )

    raw_methods = payload.get("scoringMethodProbabilities")
    if not isinstance(raw_methods, dict):
        raw_methods = {}

    forecast = DetailedForecast(
        match_id=match_id,
        predicted_score=_text(payload.get("predictedScore"), "N/A"),
        total_goals=_text(payload.get("totalGoals"), "N/A"),
        first_team_to_score=_text(payload.get("firstTeamToScore"), "Unknown"),
        half_time_winner=payload.get("halfTimeWinner"),
        second_half_winner=payload.get("secondHalfWinner"),
        likely_scorers=tuple(scorers),
        scoring_method_probabilities=ScoringMethodProbabilities(
            penalty=raw_methods.get("penalty"),
            free_kick=raw_methods.get("freeKick"),
            corner_header=raw_methods.get("cornerHeader"),
            own_goal=raw_methods.get("ownGoal"),
            outside_box=raw_methods.get("outsideBox"),
        ),
        red_cards=_text(payload.get("redCards"), "0 (90%)"),
        confidence=payload.get("confidenceScore"),
        reasoning=_text(payload.get("reasoning"), "Based on recent statistics."),
    )
    return enforce_forecast_consistency(forecast)
