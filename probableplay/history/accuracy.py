"""Accuracy metrics over the prediction history."""

import logging
import math
from typing import Iterable, Optional, Sequence

from probableplay.forecast.outcome import outcome_from_score_line, resolve_predicted_outcome
from probableplay.models import AccuracySnapshot, HistoryEntry, PredictionKind, TrendPoint

logger = logging.getLogger(__name__)

DEFAULT_TREND_WINDOW = 10


def _percent(correct: int, finished: int) -> int:
    """round(100 * correct / finished), half-up; 0 when nothing finished."""
    if finished <= 0:
        return 0
    return int(math.floor(100 * correct / finished + 0.5))


def is_entry_correct(entry: HistoryEntry) -> Optional[bool]:
    """
    Whether a saved prediction called the winner.

    Standard predictions compare the argmax of the probabilities, detailed
    forecasts compare the outcome implied by the predicted score line.

    Returns:
        True/False for finished entries, None while no final result exists.
    """
    if not entry.is_finished:
        return None

    if entry.kind == PredictionKind.STANDARD:
        predicted = resolve_predicted_outcome(entry.standard_prediction.probabilities)
    else:
        predicted = outcome_from_score_line(entry.detailed_forecast.predicted_score)
    return predicted == entry.result.winner


def compute_accuracy_snapshot(
    entries: Sequence[HistoryEntry],
    window: int = DEFAULT_TREND_WINDOW,
) -> AccuracySnapshot:
    """
    Overall accuracy plus a cumulative trend over the most recent entries.

    Args:
        entries: History, most-recent-first (ledger order).
        window: Number of recent entries the trend covers.

    Returns:
        AccuracySnapshot. Trend point i is the accuracy over the finished
        entries among the first i of the window (oldest first); unfinished
        entries hold a position without moving the counts.
    """
    marks = [is_entry_correct(entry) for entry in entries]
    finished = sum(1 for mark in marks if mark is not None)
    correct = sum(1 for mark in marks if mark)

    trend = []
    running_finished = 0
    running_correct = 0
    recent = list(reversed(marks[:max(window, 0)]))
    for i, mark in enumerate(recent, start=1):
        if mark is not None:
            running_finished += 1
            if mark:
                running_correct += 1
        trend.append(
            TrendPoint(
                name=f"P{i}",
                value=_percent(running_correct, running_finished),
                label=f"Prediction {i}",
            )
        )

    return AccuracySnapshot(
        accuracy=_percent(correct, finished),
        total_predictions=len(entries),
        finished_predictions=finished,
        correct_predictions=correct,
        trend=tuple(trend),
    )


def accuracy_by_kind(entries: Iterable[HistoryEntry]) -> dict[str, dict]:
    """Per-kind breakdown: {"STANDARD": {"total", "finished", "correct", "accuracy"}, ...}."""
    breakdown = {
        kind.value: {"total": 0, "finished": 0, "correct": 0, "accuracy": 0}
        for kind in PredictionKind
    }
    for entry in entries:
        bucket = breakdown[entry.kind.value]
        bucket["total"] += 1
        mark = is_entry_correct(entry)
        if mark is None:
            continue
        bucket["finished"] += 1
        if mark:
            bucket["correct"] += 1

    for bucket in breakdown.values():
        bucket["accuracy"] = _percent(bucket["correct"], bucket["finished"])
    return breakdown
