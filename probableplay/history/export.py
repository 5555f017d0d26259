"""CSV / JSON export of the prediction history."""

import csv
import io
import json
import math
from datetime import datetime, timezone
from typing import Optional, Sequence

from probableplay.models import HistoryEntry, PredictionKind

CSV_HEADERS = ["Date", "Sport", "League", "Home Team", "Away Team", "Prediction Type", "Details"]

ALL_KINDS = "all"


def _iso_timestamp(ms: int) -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2024-03-10T12:00:00.000Z."""
    moment = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _whole_percent(probability: float) -> str:
    return f"{int(math.floor(probability * 100 + 0.5))}%"


def _filter(entries: Sequence[HistoryEntry], kind: str) -> list[HistoryEntry]:
    if kind == ALL_KINDS:
        return list(entries)
    wanted = PredictionKind(kind)
    return [entry for entry in entries if entry.kind == wanted]


def _details(entry: HistoryEntry) -> str:
    if entry.kind == PredictionKind.STANDARD:
        probs = entry.standard_prediction.probabilities
        return (
            f"Home: {_whole_percent(probs.home)}, "
            f"Draw: {_whole_percent(probs.draw)}, "
            f"Away: {_whole_percent(probs.away)}"
        )
    forecast = entry.detailed_forecast
    return f"Score: {forecast.predicted_score}, First to Score: {forecast.first_team_to_score}"


def export_to_csv(entries: Sequence[HistoryEntry], kind: str = ALL_KINDS) -> str:
    """
    History as CSV, one row per entry.

    Args:
        entries: Ledger entries (any order, kept as given).
        kind: "all", "STANDARD" or "DETAILED".

    Returns:
        CSV text, or "" when nothing matches the filter.
    """
    filtered = _filter(entries, kind)
    if not filtered:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in filtered:
        writer.writerow([
            _iso_timestamp(entry.timestamp),
            entry.match.sport,
            entry.match.league,
            entry.match.home_team,
            entry.match.away_team,
            entry.kind.value,
            _details(entry),
        ])
    return buffer.getvalue().rstrip("\n")


def export_to_json(
    entries: Sequence[HistoryEntry],
    kind: str = ALL_KINDS,
    now: Optional[datetime] = None,
) -> str:
    """History as a pretty-printed JSON document with export metadata."""
    filtered = _filter(entries, kind)
    now = now or datetime.now(timezone.utc)

    document = {
        "exportDate": _iso_timestamp(int(now.timestamp() * 1000)),
        "predictionType": kind,
        "totalPredictions": len(filtered),
        "predictions": [
            {
                "id": entry.id,
                "date": _iso_timestamp(entry.timestamp),
                "match": {
                    "sport": entry.match.sport,
                    "league": entry.match.league,
                    "homeTeam": entry.match.home_team,
                    "awayTeam": entry.match.away_team,
                    "startTime": entry.match.start_time,
                },
                "prediction": entry.prediction.to_dict(),
                "result": entry.result.to_dict() if entry.result else None,
            }
            for entry in filtered
        ],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_filename(fmt: str, today: Optional[datetime] = None) -> str:
    """Download name, e.g. probableplay-predictions-2024-03-10.csv."""
    if fmt not in ("csv", "json"):
        raise ValueError(f"Unsupported export format: {fmt}")
    today = today or datetime.now(timezone.utc)
    return f"probableplay-predictions-{today.strftime('%Y-%m-%d')}.{fmt}"
