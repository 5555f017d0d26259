"""
Forecast service: model query -> extraction -> validation -> ledger.

Wires the collaborators explicitly (no module-level singleton):

    service = create_forecast_service()
    prediction = await service.predict_match(match)
    snapshot = await service.accuracy_snapshot()

A prediction is written to the ledger only after the whole request
succeeded, so a failed or cancelled request leaves no trace.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from probableplay.config import Settings, get_settings
from probableplay.errors import MalformedResponse
from probableplay.forecast.consistency import build_detailed_forecast
from probableplay.forecast.probability import normalize_payload_probabilities
from probableplay.history.accuracy import compute_accuracy_snapshot
from probableplay.history.ledger import HistoryLedger
from probableplay.history.storage import JsonFileHistoryStore
from probableplay.llm.extraction import extract_structured
from probableplay.llm.gemini_client import GeminiClient, ModelQuery
from probableplay.llm.lookups import MatchResultsLookup
from probableplay.llm.prompts import (
    DETAILED_SYSTEM_INSTRUCTION,
    STANDARD_SYSTEM_INSTRUCTION,
    build_detailed_prompt,
    build_standard_prompt,
)
from probableplay.models import (
    AccuracySnapshot,
    DetailedForecast,
    HistoryEntry,
    Match,
    PredictionKind,
    StandardPrediction,
)

logger = logging.getLogger(__name__)


def _require_object(payload, raw_text: str) -> dict:
    if not isinstance(payload, dict):
        raise MalformedResponse(
            f"Expected a JSON object, got {type(payload).__name__}", raw_text=raw_text
        )
    return payload


def _text_field(value) -> str:
    return value if isinstance(value, str) else ""


class ForecastService:
    """Live predictions, result refresh and accuracy over one ledger."""

    def __init__(
        self,
        model: ModelQuery,
        ledger: HistoryLedger,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.model = model
        self.ledger = ledger
        self.settings = settings or get_settings()
        self._today = today

    async def predict_match(self, match: Match, save: bool = True) -> StandardPrediction:
        """
        Standard prediction: normalized win/draw/loss probabilities plus analysis.

        Raises:
            UpstreamUnavailable: model query failed.
            MalformedResponse: no JSON object in the answer (caller may retry).
        """
        response = await self.model.query(
            build_standard_prompt(match, self._today()),
            instructions=STANDARD_SYSTEM_INSTRUCTION,
            temperature=self.settings.STANDARD_PREDICTION_TEMPERATURE,
            kind="standard",
        )
        payload = _require_object(extract_structured(response.text), response.text)

        key_factors = payload.get("keyFactors")
        prediction = StandardPrediction(
            match_id=match.id,
            probabilities=normalize_payload_probabilities(payload),
            summary=_text_field(payload.get("summary")),
            detailed_analysis=_text_field(payload.get("detailedAnalysis")),
            key_factors=tuple(
                str(factor) for factor in key_factors if isinstance(factor, (str, int, float))
            ) if isinstance(key_factors, list) else (),
            sources=response.sources,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )

        if save:
            await self.ledger.append(match, prediction, PredictionKind.STANDARD)
        return prediction

    async def detailed_forecast(self, match: Match, save: bool = True) -> DetailedForecast:
        """High precision forecast, repaired for internal consistency before it is returned."""
        response = await self.model.query(
            build_detailed_prompt(match, self._today()),
            instructions=DETAILED_SYSTEM_INSTRUCTION,
            temperature=self.settings.DETAILED_FORECAST_TEMPERATURE,
            kind="detailed",
        )
        payload = _require_object(extract_structured(response.text), response.text)
        forecast = build_detailed_forecast(match.id, payload)

        if save:
            await self.ledger.append(match, forecast, PredictionKind.DETAILED)
        return forecast

    async def refresh_results(self, lookup: MatchResultsLookup) -> int:
        """Attach final results to pending entries. Returns the number of matches resolved."""
        pending = await self.ledger.pending_matches()
        if not pending:
            return 0

        results = await lookup.fetch_results(pending)
        resolved = 0
        for match_id, result in results.items():
            if await self.ledger.attach_result(match_id, result):
                resolved += 1

        logger.info(f"[LEDGER] Result refresh: {resolved}/{len(pending)} pending matches resolved")
        return resolved

    async def accuracy_snapshot(self, window: Optional[int] = None) -> AccuracySnapshot:
        entries = await self.ledger.list()
        return compute_accuracy_snapshot(
            entries, window=window if window is not None else self.settings.ACCURACY_TREND_WINDOW
        )

    async def history(self) -> list[HistoryEntry]:
        return await self.ledger.list()


def create_forecast_service(settings: Optional[Settings] = None) -> ForecastService:
    """Factory: Gemini model + file-backed ledger from settings."""
    settings = settings or get_settings()
    ledger = HistoryLedger(JsonFileHistoryStore(settings.HISTORY_STORE_DIR), settings=settings)
    return ForecastService(GeminiClient(settings=settings), ledger, settings=settings)
