"""
Outcome resolution: probabilities or score lines to Home / Draw / Away.

Tie policy (the only comparator in the package):
    best = Draw
    Home replaces best only if strictly greater than best.
    Away replaces best only if strictly greater than the (possibly new) best.

So Draw wins any tie it is part of, and Home beats Away on an exact
Home/Away tie above the draw value.
"""

import re
from typing import Optional

from probableplay.models import Outcome, Probabilities

_SCORE_LINE = re.compile(r"(\d+)\s*-\s*(\d+)")


def resolve_predicted_outcome(probabilities: Probabilities) -> Outcome:
    """Pick the argmax outcome under the draw-first tie policy."""
    best, best_value = Outcome.DRAW, probabilities.draw
    if probabilities.home > best_value:
        best, best_value = Outcome.HOME, probabilities.home
    if probabilities.away > best_value:
        best = Outcome.AWAY
    return best


def resolve_actual_outcome(home_score: int, away_score: int) -> Outcome:
    """Determine match outcome from final scores."""
    if home_score > away_score:
        return Outcome.HOME
    elif away_score > home_score:
        return Outcome.AWAY
    return Outcome.DRAW


def parse_score_line(score: Optional[str]) -> Optional[tuple[int, int]]:
    """First "H-A" integer pair in a score string, e.g. "2-1" or "Arsenal 2 - 1"."""
    if not score:
        return None
    match = _SCORE_LINE.search(score)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def outcome_from_score_line(score: Optional[str]) -> Outcome:
    """Outcome implied by a predicted score line; Draw when no pair is found."""
    parsed = parse_score_line(score)
    if parsed is None:
        return Outcome.DRAW
    return resolve_actual_outcome(*parsed)


def coerce_score(value) -> Optional[int]:
    """Non-negative integer goal count from a model-supplied value, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None
