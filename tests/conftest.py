"""Shared fixtures for the forecast engine tests."""

import pytest

from probableplay.config import Settings
from probableplay.models import (
    DetailedForecast,
    Match,
    MatchResult,
    Outcome,
    Probabilities,
    StandardPrediction,
)


@pytest.fixture
def settings():
    """Settings isolated from any local .env values that matter to tests."""
    return Settings(
        GEMINI_API_KEY="test-key",
        GEMINI_MODEL="gemini-test",
        GEMINI_BASE_URL="https://gemini.test/v1beta/models",
        HISTORY_CAPACITY=50,
        ACCURACY_TREND_WINDOW=10,
        BACKTEST_MAX_MATCHES=5,
    )


@pytest.fixture
def make_match():
    def _make(match_id="m1", home="Arsenal", away="Chelsea"):
        return Match(
            id=match_id,
            sport="Football",
            league="Premier League",
            home_team=home,
            away_team=away,
            start_time="2024-03-10T15:00:00Z",
        )

    return _make


@pytest.fixture
def make_standard():
    def _make(match_id="m1", home=0.5, draw=0.3, away=0.2):
        return StandardPrediction(
            match_id=match_id,
            probabilities=Probabilities(home=home, draw=draw, away=away),
            summary="Home side in form.",
            detailed_analysis="Analysis.",
            key_factors=("Form",),
            last_updated="2024-03-10T12:00:00+00:00",
        )

    return _make


@pytest.fixture
def make_detailed():
    def _make(match_id="m1", score="2-1"):
        return DetailedForecast(
            match_id=match_id,
            predicted_score=score,
            total_goals="Over 2.5",
            first_team_to_score="Arsenal",
        )

    return _make


@pytest.fixture
def make_result():
    def _make(home_score=2, away_score=1, finished=True):
        if home_score > away_score:
            winner = Outcome.HOME
        elif away_score > home_score:
            winner = Outcome.AWAY
        else:
            winner = Outcome.DRAW
        return MatchResult(
            home_score=home_score, away_score=away_score, winner=winner, is_finished=finished
        )

    return _make
