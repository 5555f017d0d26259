"""Forecast validation: probabilities, outcomes and detailed-forecast consistency."""

from probableplay.forecast.probability import NEUTRAL_PROBABILITIES, normalize_probabilities
from probableplay.forecast.outcome import (
    outcome_from_score_line,
    resolve_actual_outcome,
    resolve_predicted_outcome,
)
from probableplay.forecast.consistency import build_detailed_forecast, enforce_forecast_consistency

__all__ = [
    "NEUTRAL_PROBABILITIES", "normalize_probabilities",
    "outcome_from_score_line", "resolve_actual_outcome", "resolve_predicted_outcome",
    "build_detailed_forecast", "enforce_forecast_consistency",
]
