"""Tests for the forecast service wiring."""

import json
from datetime import date

import pytest
from unittest.mock import AsyncMock

from probableplay.errors import MalformedResponse, UpstreamUnavailable
from probableplay.forecast.service import ForecastService, create_forecast_service
from probableplay.history.ledger import HistoryLedger
from probableplay.history.storage import InMemoryHistoryStore, JsonFileHistoryStore
from probableplay.llm.gemini_client import GeminiClient, ModelResponse
from probableplay.models import Confidence, PredictionKind, Source

STANDARD_ANSWER = """Based on my research:
```json
{
  "homeWinProbability": 0.55,
  "drawProbability": 0.25,
  "awayWinProbability": 0.25,
  "summary": "Arsenal are favourites.",
  "detailedAnalysis": "Two paragraphs.",
  "keyFactors": ["Home form", "Injuries", null]
}
```"""

DETAILED_ANSWER = json.dumps({
    "predictedScore": "0-0",
    "totalGoals": "Under 1.5",
    "firstTeamToScore": "None",
    "halfTimeWinner": "Draw",
    "secondHalfWinner": "draw",
    "likelyScorers": [{"player": "Saka", "team": "Arsenal", "method": "Header", "likelihood": "20%"}],
    "scoringMethodProbabilities": {"penalty": "10", "freeKick": "5%"},
    "confidenceScore": "low",
    "reasoning": "Both defences are elite.",
})


@pytest.fixture
def ledger(settings):
    return HistoryLedger(InMemoryHistoryStore(), settings=settings)


def _service(model, ledger, settings):
    return ForecastService(model, ledger, settings=settings, today=lambda: date(2024, 3, 10))


def _model(text, sources=()):
    model = AsyncMock()
    model.query.return_value = ModelResponse(text=text, sources=sources)
    return model


class TestPredictMatch:
    """Standard predictions."""

    @pytest.mark.asyncio
    async def test_normalizes_and_saves(self, settings, ledger, make_match):
        sources = (Source(title="BBC", uri="https://bbc.co.uk"),)
        service = _service(_model(STANDARD_ANSWER, sources), ledger, settings)

        prediction = await service.predict_match(make_match())

        assert abs(prediction.probabilities.total - 1.0) < 1e-9
        assert abs(prediction.probabilities.home - 0.55 / 1.05) < 1e-9
        assert prediction.summary == "Arsenal are favourites."
        assert prediction.key_factors == ("Home form", "Injuries")
        assert prediction.sources == sources
        assert prediction.match_id == "m1"

        entries = await ledger.list()
        assert len(entries) == 1
        assert entries[0].kind == PredictionKind.STANDARD
        assert entries[0].standard_prediction == prediction

    @pytest.mark.asyncio
    async def test_query_arguments(self, settings, ledger, make_match):
        model = _model(STANDARD_ANSWER)
        await _service(model, ledger, settings).predict_match(make_match())

        call = model.query.await_args
        assert "Arsenal" in call.args[0] and "Chelsea" in call.args[0]
        assert "Sunday, March 10, 2024" in call.args[0]
        assert call.kwargs["temperature"] == settings.STANDARD_PREDICTION_TEMPERATURE
        assert call.kwargs["kind"] == "standard"

    @pytest.mark.asyncio
    async def test_unparsable_answer_raises_and_saves_nothing(self, settings, ledger, make_match):
        service = _service(_model("I'm not sure about this one."), ledger, settings)
        with pytest.raises(MalformedResponse):
            await service.predict_match(make_match())
        assert await ledger.list() == []

    @pytest.mark.asyncio
    async def test_array_answer_is_malformed(self, settings, ledger, make_match):
        service = _service(_model("[0.5, 0.3, 0.2]"), ledger, settings)
        with pytest.raises(MalformedResponse):
            await service.predict_match(make_match())

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, settings, ledger, make_match):
        model = AsyncMock()
        model.query.side_effect = UpstreamUnavailable("quota", status="ERROR")
        with pytest.raises(UpstreamUnavailable):
            await _service(model, ledger, settings).predict_match(make_match())
        assert await ledger.list() == []

    @pytest.mark.asyncio
    async def test_save_false(self, settings, ledger, make_match):
        await _service(_model(STANDARD_ANSWER), ledger, settings).predict_match(make_match(), save=False)
        assert await ledger.list() == []

    @pytest.mark.asyncio
    async def test_zero_probabilities_fall_back_to_neutral(self, settings, ledger, make_match):
        answer = '{"homeWinProbability": 0, "drawProbability": 0, "awayWinProbability": 0}'
        prediction = await _service(_model(answer), ledger, settings).predict_match(make_match())
        assert (prediction.probabilities.home, prediction.probabilities.draw) == (0.34, 0.32)
        assert prediction.summary == ""


class TestDetailedForecast:
    """High precision forecasts."""

    @pytest.mark.asyncio
    async def test_consistency_enforced_and_saved(self, settings, ledger, make_match):
        model = _model(DETAILED_ANSWER)
        forecast = await _service(model, ledger, settings).detailed_forecast(make_match())

        assert forecast.likely_scorers == ()
        assert forecast.confidence == Confidence.LOW
        assert forecast.scoring_method_probabilities.penalty == "10%"
        assert forecast.scoring_method_probabilities.outside_box == "0%"
        assert model.query.await_args.kwargs["temperature"] == settings.DETAILED_FORECAST_TEMPERATURE

        entries = await ledger.list()
        assert entries[0].kind == PredictionKind.DETAILED
        assert entries[0].detailed_forecast == forecast


class TestRefreshAndAccuracy:
    """Result refresh feeding the accuracy snapshot."""

    @pytest.mark.asyncio
    async def test_refresh_results(self, settings, ledger, make_match, make_result):
        service = _service(_model(STANDARD_ANSWER), ledger, settings)
        await service.predict_match(make_match("m1"))
        await service.predict_match(make_match("m2", home="Spurs", away="Everton"))

        lookup = AsyncMock()
        lookup.fetch_results.return_value = {"m1": make_result(2, 0), "unknown": make_result(1, 1)}

        assert await service.refresh_results(lookup) == 1
        pending = lookup.fetch_results.await_args.args[0]
        assert [m.id for m in pending] == ["m2", "m1"]

        snapshot = await service.accuracy_snapshot()
        assert snapshot.total_predictions == 2
        assert snapshot.finished_predictions == 1
        assert snapshot.accuracy == 100

    @pytest.mark.asyncio
    async def test_refresh_with_nothing_pending(self, settings, ledger):
        lookup = AsyncMock()
        assert await _service(_model(STANDARD_ANSWER), ledger, settings).refresh_results(lookup) == 0
        lookup.fetch_results.assert_not_called()

    @pytest.mark.asyncio
    async def test_history(self, settings, ledger, make_match):
        service = _service(_model(STANDARD_ANSWER), ledger, settings)
        await service.predict_match(make_match())
        assert [e.match.id for e in await service.history()] == ["m1"]


class TestFactory:
    def test_create_forecast_service(self, settings):
        service = create_forecast_service(settings)
        assert isinstance(service.model, GeminiClient)
        assert isinstance(service.ledger.store, JsonFileHistoryStore)
        assert service.ledger.capacity == settings.HISTORY_CAPACITY
