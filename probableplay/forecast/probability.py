"""
Probability normalization for model-supplied win/draw/loss values.

Single policy for every call site (live predictions and backtests):
ALWAYS renormalize. Values the model reports as already summing to ~1 are
still divided by their sum, so identical inputs give identical outputs no
matter where they came from.
"""

import logging
import math
from typing import Any

from probableplay.errors import InvalidProbabilities
from probableplay.models import Probabilities
from probableplay.telemetry import record_probability_fallback

logger = logging.getLogger(__name__)

# Neutral fallback when nothing usable was supplied (sums to 1.0)
NEUTRAL_PROBABILITIES = Probabilities(home=0.34, draw=0.32, away=0.34)


def coerce_probability(value: Any) -> float:
    """
    Coerce a raw value into [0, 1].

    Missing, non-numeric, NaN and negative values become 0; values above 1
    are clamped to 1. Numeric strings ("0.45") are accepted.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))


def _normalize_clamped(home: float, draw: float, away: float) -> Probabilities:
    total = home + draw + away
    if total <= 0:
        raise InvalidProbabilities(f"Clamped probability sum is {total}")
    return Probabilities(home=home / total, draw=draw / total, away=away / total)


def normalize_probabilities(home: Any, draw: Any, away: Any) -> Probabilities:
    """
    Turn three raw values into a valid probability triple.

    Args:
        home: Raw home-win value.
        draw: Raw draw value.
        away: Raw away-win value.

    Returns:
        Probabilities summing to 1.0, or NEUTRAL_PROBABILITIES when the
        clamped inputs sum to zero.
    """
    clamped = (coerce_probability(home), coerce_probability(draw), coerce_probability(away))
    try:
        return _normalize_clamped(*clamped)
    except InvalidProbabilities as e:
        logger.info(f"Probability fallback applied ({e}); raw=({home!r}, {draw!r}, {away!r})")
        record_probability_fallback()
        return NEUTRAL_PROBABILITIES


def normalize_payload_probabilities(payload: dict) -> Probabilities:
    """Normalize the homeWinProbability / drawProbability / awayWinProbability keys of a payload."""
    return normalize_probabilities(
        payload.get("homeWinProbability"),
        payload.get("drawProbability"),
        payload.get("awayWinProbability"),
    )
