"""Tests for the backtest simulator."""

import json
from datetime import date

import pytest
from unittest.mock import AsyncMock

from probableplay.backtest.simulator import (
    BacktestRequest,
    BacktestSimulator,
    BacktestState,
    parse_backtest_candidates,
    simulation_date,
    summarize_backtest,
)
from probableplay.errors import UpstreamUnavailable
from probableplay.llm.gemini_client import ModelResponse
from probableplay.models import BacktestResultItem, Outcome, Probabilities

CANDIDATE_ROWS = [
    {"date": "2024-03-10", "homeTeam": "Arsenal", "awayTeam": "Brentford", "homeScore": 2, "awayScore": 1},
    {"date": "2024-03-03", "homeTeam": "Sheffield United", "awayTeam": "Arsenal", "homeScore": 0, "awayScore": 6},
    {"date": "2024-02-24", "homeTeam": "Arsenal", "awayTeam": "Newcastle", "homeScore": 4, "awayScore": 1},
]


def _answer(home, draw, away, explanation="Form"):
    payload = {
        "homeWinProbability": home,
        "drawProbability": draw,
        "awayWinProbability": away,
        "explanation": explanation,
    }
    return ModelResponse(text=f"```json\n{json.dumps(payload)}\n```")


def _request(count=3):
    return BacktestRequest(sport="Football", league="Premier League", teams=("Arsenal",), match_count=count)


def _item(is_correct):
    return BacktestResultItem(
        id="x",
        match_date=date(2024, 3, 10),
        home_team="A",
        away_team="B",
        actual_home_score=1,
        actual_away_score=0,
        actual_winner=Outcome.HOME,
        predicted_winner=Outcome.HOME if is_correct else Outcome.DRAW,
        predicted_probabilities=Probabilities(0.5, 0.3, 0.2),
        is_correct=is_correct,
    )


@pytest.fixture
def lookup():
    mock = AsyncMock()
    mock.fetch_candidates.return_value = CANDIDATE_ROWS
    return mock


@pytest.fixture
def model():
    mock = AsyncMock()
    mock.query.side_effect = [
        _answer(0.6, 0.25, 0.15),  # Home, correct
        _answer(0.5, 0.3, 0.2),  # Home, wrong (away won)
        _answer(0.4, 0.4, 0.2),  # tie -> Draw, wrong
    ]
    return mock


class TestHelpers:
    """Pure helpers."""

    def test_simulation_date_is_day_before(self):
        assert simulation_date(date(2024, 3, 10)) == date(2024, 3, 9)
        assert simulation_date(date(2024, 3, 1)) == date(2024, 2, 29)

    def test_request_validation(self):
        with pytest.raises(ValueError):
            BacktestRequest(sport="Football", league="Premier League", teams=())
        with pytest.raises(ValueError):
            BacktestRequest(sport="Football", league="Premier League", teams=("  ",))
        with pytest.raises(ValueError):
            BacktestRequest(sport="Football", league=" ", teams=("Arsenal",))

    def test_request_strips_team_names(self):
        assert BacktestRequest("Football", "EPL", (" Arsenal ", "")).teams == ("Arsenal",)

    def test_parse_candidates_drops_incomplete_rows(self):
        rows = [
            {"date": "2024-03-10", "homeTeam": "A", "awayTeam": "B", "homeScore": "2", "awayScore": 0},
            {"homeTeam": "A", "awayTeam": "B", "homeScore": 1, "awayScore": 0},
            {"date": "2024-03-09", "homeTeam": "", "awayTeam": "B", "homeScore": 1, "awayScore": 0},
            {"date": "2024-03-08", "homeTeam": "A", "awayTeam": "B", "homeScore": None, "awayScore": 0},
            {"date": "yesterday", "homeTeam": "A", "awayTeam": "B", "homeScore": 1, "awayScore": 0},
            {"date": "2024-03-07", "homeTeam": "A", "awayTeam": "B", "homeScore": "²", "awayScore": 0},
            "garbage",
            {"date": "2024-03-01T20:00:00Z", "homeTeam": "C", "awayTeam": "D", "homeScore": 0, "awayScore": 0},
        ]
        candidates = parse_backtest_candidates(rows, limit=5)
        assert [(c.home_team, c.match_date) for c in candidates] == [
            ("A", date(2024, 3, 10)),
            ("C", date(2024, 3, 1)),
        ]
        assert candidates[0].home_score == 2

    def test_parse_candidates_caps_and_rejects_non_lists(self):
        assert len(parse_backtest_candidates(CANDIDATE_ROWS, limit=2)) == 2
        assert parse_backtest_candidates({"date": "2024-03-10"}, limit=5) == []

    def test_summary_trend(self):
        summary = summarize_backtest([_item(True), _item(False), _item(True)])
        assert (summary.total, summary.correct, summary.accuracy) == (3, 2, 67)
        assert [p.label for p in summary.trend] == ["1/1", "1/2", "2/3"]
        assert [p.value for p in summary.trend] == [100, 50, 67]
        assert summarize_backtest([]).accuracy == 0


class TestBacktestRun:
    """Running the state machine."""

    def test_match_count_clamped(self, settings, model, lookup):
        simulator = BacktestSimulator(model, lookup, settings=settings)
        assert simulator.start(_request(count=12)).match_count == 5
        assert simulator.start(_request(count=0)).match_count == 1

    @pytest.mark.asyncio
    async def test_evaluates_in_fetch_order(self, settings, model, lookup):
        run = BacktestSimulator(model, lookup, settings=settings).start(_request())
        assert run.state == BacktestState.IDLE

        items = [item async for item in run]

        assert run.state == BacktestState.DONE
        assert run.results == items
        assert [i.home_team for i in items] == ["Arsenal", "Sheffield United", "Arsenal"]
        assert [i.predicted_winner for i in items] == [Outcome.HOME, Outcome.HOME, Outcome.DRAW]
        assert [i.actual_winner for i in items] == [Outcome.HOME, Outcome.AWAY, Outcome.HOME]
        assert [i.is_correct for i in items] == [True, False, False]
        assert abs(items[0].predicted_probabilities.total - 1.0) < 1e-9
        assert items[0].explanation == "Form"
        lookup.fetch_candidates.assert_awaited_once_with("Football", "Premier League", ("Arsenal",), 3)

    @pytest.mark.asyncio
    async def test_prompt_is_anchored_to_day_before(self, settings, model, lookup):
        await BacktestSimulator(model, lookup, settings=settings).start(_request()).collect()

        prompt = model.query.await_args_list[0].args[0]
        assert "SIMULATION DATE: 2024-03-09" in prompt
        assert "Do not check actual results" in prompt
        assert model.query.await_args_list[0].kwargs["temperature"] == settings.BACKTEST_TEMPERATURE

    @pytest.mark.asyncio
    async def test_candidate_failure_yields_placeholder(self, settings, lookup):
        model = AsyncMock()
        model.query.side_effect = [
            _answer(0.6, 0.25, 0.15),
            UpstreamUnavailable("boom"),
            ModelResponse(text="Sorry, I cannot help with that."),
        ]
        run = BacktestSimulator(model, lookup, settings=settings).start(_request())
        items = await run.collect()

        assert run.state == BacktestState.DONE
        assert run.errors == 2
        assert len(items) == 3
        placeholder = items[1]
        assert placeholder.failed is True
        assert placeholder.explanation == "Error"
        assert placeholder.predicted_winner == Outcome.DRAW
        assert placeholder.predicted_probabilities == Probabilities(0.0, 0.0, 0.0)
        assert placeholder.is_correct is False
        assert (placeholder.actual_home_score, placeholder.actual_away_score) == (0, 6)
        assert placeholder.actual_winner == Outcome.AWAY
        assert items[2].failed is True

    @pytest.mark.asyncio
    async def test_cancel_stops_before_next_candidate(self, settings, model, lookup):
        run = BacktestSimulator(model, lookup, settings=settings).start(_request())
        async for _ in run:
            run.cancel()

        assert run.state == BacktestState.CANCELLED
        assert len(run.results) == 1
        assert model.query.await_count == 1

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, settings, model, lookup):
        run = BacktestSimulator(model, lookup, settings=settings).start(_request())
        run.cancel()

        assert await run.collect() == []
        assert run.state == BacktestState.CANCELLED
        lookup.fetch_candidates.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_failure_fails_run(self, settings, model):
        lookup = AsyncMock()
        lookup.fetch_candidates.side_effect = UpstreamUnavailable("search down", status="TIMEOUT")
        run = BacktestSimulator(model, lookup, settings=settings).start(_request())

        with pytest.raises(UpstreamUnavailable):
            await run.collect()
        assert run.state == BacktestState.FAILED
        model.query.assert_not_called()

    @pytest.mark.asyncio
    async def test_each_start_is_a_fresh_run(self, settings, lookup):
        model = AsyncMock()
        model.query.return_value = _answer(0.6, 0.2, 0.2)
        simulator = BacktestSimulator(model, lookup, settings=settings)

        first = await simulator.start(_request(count=2)).collect()
        second = await simulator.start(_request(count=2)).collect()
        assert len(first) == len(second) == 2
        assert first[0].id != second[0].id
