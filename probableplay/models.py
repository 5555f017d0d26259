"""Domain data model.

Plain immutable dataclasses shared by the engine and its UI collaborators.
`to_dict()` / `from_dict()` use the camelCase keys of the persisted history
format (`probable_play_history_v2`).
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional, Union


class Outcome(str, Enum):
    HOME = "Home"
    DRAW = "Draw"
    AWAY = "Away"


class PredictionKind(str, Enum):
    STANDARD = "STANDARD"
    DETAILED = "DETAILED"


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ScoringMethod(str, Enum):
    SHOT = "Shot"
    HEADER = "Header"
    PENALTY = "Penalty"
    FREE_KICK = "Free Kick"
    OWN_GOAL = "Own Goal"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Match:
    """Fixture snapshot attached to every history entry."""

    id: str
    sport: str
    league: str
    home_team: str
    away_team: str
    start_time: str
    status: str = "Scheduled"  # Scheduled, Live, Finished, Postponed
    score: Optional[str] = None
    minute: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "sport": self.sport,
            "league": self.league,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "startTime": self.start_time,
            "status": self.status,
        }
        if self.score is not None:
            data["score"] = self.score
        if self.minute is not None:
            data["minute"] = self.minute
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        return cls(
            id=str(data["id"]),
            sport=data.get("sport", ""),
            league=data.get("league", ""),
            home_team=data["homeTeam"],
            away_team=data["awayTeam"],
            start_time=data.get("startTime", ""),
            status=data.get("status", "Scheduled"),
            score=data.get("score"),
            minute=data.get("minute"),
        )


@dataclass(frozen=True)
class Probabilities:
    """Home / draw / away win probabilities."""

    home: float
    draw: float
    away: float

    @property
    def total(self) -> float:
        return self.home + self.draw + self.away

    def to_dict(self) -> dict:
        return {"homeWin": self.home, "draw": self.draw, "awayWin": self.away}

    @classmethod
    def from_dict(cls, data: dict) -> "Probabilities":
        return cls(
            home=float(data["homeWin"]),
            draw=float(data["draw"]),
            away=float(data["awayWin"]),
        )


@dataclass(frozen=True)
class Source:
    """Grounding citation returned alongside a model answer."""

    title: str
    uri: str

    def to_dict(self) -> dict:
        return {"title": self.title, "uri": self.uri}

    @classmethod
    def from_dict(cls, data: dict) -> "Source":
        return cls(title=data["title"], uri=data["uri"])


@dataclass(frozen=True)
class StandardPrediction:
    match_id: str
    probabilities: Probabilities
    summary: str
    detailed_analysis: str
    key_factors: tuple[str, ...] = ()
    sources: tuple[Source, ...] = ()
    last_updated: str = ""

    def to_dict(self) -> dict:
        return {
            "matchId": self.match_id,
            "probabilities": self.probabilities.to_dict(),
            "summary": self.summary,
            "detailedAnalysis": self.detailed_analysis,
            "keyFactors": list(self.key_factors),
            "sources": [s.to_dict() for s in self.sources],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StandardPrediction":
        return cls(
            match_id=str(data["matchId"]),
            probabilities=Probabilities.from_dict(data["probabilities"]),
            summary=data.get("summary", ""),
            detailed_analysis=data.get("detailedAnalysis", ""),
            key_factors=tuple(data.get("keyFactors") or ()),
            sources=tuple(Source.from_dict(s) for s in data.get("sources") or ()),
            last_updated=data.get("lastUpdated", ""),
        )


@dataclass(frozen=True)
class ScorerPrediction:
    player: str
    team: str
    method: ScoringMethod = ScoringMethod.SHOT
    likelihood: str = "0%"

    def to_dict(self) -> dict:
        return {
            "player": self.player,
            "team": self.team,
            "method": self.method.value,
            "likelihood": self.likelihood,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScorerPrediction":
        return cls(
            player=data.get("player", ""),
            team=data.get("team", ""),
            method=ScoringMethod(data.get("method", ScoringMethod.SHOT.value)),
            likelihood=data.get("likelihood", "0%"),
        )


@dataclass(frozen=True)
class ScoringMethodProbabilities:
    penalty: str = "0%"
    free_kick: str = "0%"
    corner_header: str = "0%"
    own_goal: str = "0%"
    outside_box: str = "0%"

    def to_dict(self) -> dict:
        return {
            "penalty": self.penalty,
            "freeKick": self.free_kick,
            "cornerHeader": self.corner_header,
            "ownGoal": self.own_goal,
            "outsideBox": self.outside_box,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScoringMethodProbabilities":
        return cls(
            penalty=data.get("penalty", "0%"),
            free_kick=data.get("freeKick", "0%"),
            corner_header=data.get("cornerHeader", "0%"),
            own_goal=data.get("ownGoal", "0%"),
            outside_box=data.get("outsideBox", "0%"),
        )


@dataclass(frozen=True)
class DetailedForecast:
    match_id: str
    predicted_score: str
    total_goals: str
    first_team_to_score: str
    half_time_winner: Outcome = Outcome.DRAW
    second_half_winner: Outcome = Outcome.DRAW
    likely_scorers: tuple[ScorerPrediction, ...] = ()
    scoring_method_probabilities: ScoringMethodProbabilities = field(
        default_factory=ScoringMethodProbabilities
    )
    red_cards: str = "0 (90%)"
    confidence: Confidence = Confidence.MEDIUM
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "matchId": self.match_id,
            "predictedScore": self.predicted_score,
            "totalGoals": self.total_goals,
            "firstTeamToScore": self.first_team_to_score,
            "halfTimeWinner": self.half_time_winner.value,
            "secondHalfWinner": self.second_half_winner.value,
            "likelyScorers": [s.to_dict() for s in self.likely_scorers],
            "scoringMethodProbabilities": self.scoring_method_probabilities.to_dict(),
            "redCards": self.red_cards,
            "confidenceScore": self.confidence.value,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DetailedForecast":
        return cls(
            match_id=str(data["matchId"]),
            predicted_score=data["predictedScore"],
            total_goals=data.get("totalGoals", "N/A"),
            first_team_to_score=data.get("firstTeamToScore", "Unknown"),
            half_time_winner=Outcome(data.get("halfTimeWinner", "Draw")),
            second_half_winner=Outcome(data.get("secondHalfWinner", "Draw")),
            likely_scorers=tuple(
                ScorerPrediction.from_dict(s) for s in data.get("likelyScorers") or ()
            ),
            scoring_method_probabilities=ScoringMethodProbabilities.from_dict(
                data.get("scoringMethodProbabilities") or {}
            ),
            red_cards=data.get("redCards", "0 (90%)"),
            confidence=Confidence(data.get("confidenceScore", "Medium")),
            reasoning=data.get("reasoning", ""),
        )


Prediction = Union[StandardPrediction, DetailedForecast]


@dataclass(frozen=True)
class MatchResult:
    home_score: int
    away_score: int
    winner: Outcome
    is_finished: bool = True

    def to_dict(self) -> dict:
        return {
            "homeScore": self.home_score,
            "awayScore": self.away_score,
            "winner": self.winner.value,
            "isFinished": self.is_finished,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchResult":
        return cls(
            home_score=int(data["homeScore"]),
            away_score=int(data["awayScore"]),
            winner=Outcome(data["winner"]),
            is_finished=bool(data.get("isFinished", False)),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One saved prediction. Only `result` changes after creation (by copy)."""

    id: str
    match: Match
    kind: PredictionKind
    timestamp: int  # ms since epoch
    standard_prediction: Optional[StandardPrediction] = None
    detailed_forecast: Optional[DetailedForecast] = None
    result: Optional[MatchResult] = None

    def __post_init__(self):
        if self.kind == PredictionKind.STANDARD:
            if self.standard_prediction is None or self.detailed_forecast is not None:
                raise ValueError("STANDARD entry must carry only a standard prediction")
        elif self.detailed_forecast is None or self.standard_prediction is not None:
            raise ValueError("DETAILED entry must carry only a detailed forecast")

    @property
    def prediction(self) -> Prediction:
        if self.kind == PredictionKind.STANDARD:
            return self.standard_prediction
        return self.detailed_forecast

    @property
    def is_finished(self) -> bool:
        return self.result is not None and self.result.is_finished

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "match": self.match.to_dict(),
            "type": self.kind.value,
            "timestamp": self.timestamp,
        }
        if self.standard_prediction is not None:
            data["standardPrediction"] = self.standard_prediction.to_dict()
        if self.detailed_forecast is not None:
            data["detailedForecast"] = self.detailed_forecast.to_dict()
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        standard = data.get("standardPrediction")
        detailed = data.get("detailedForecast")
        result = data.get("result")
        return cls(
            id=str(data["id"]),
            match=Match.from_dict(data["match"]),
            kind=PredictionKind(data["type"]),
            timestamp=int(data["timestamp"]),
            standard_prediction=StandardPrediction.from_dict(standard) if standard else None,
            detailed_forecast=DetailedForecast.from_dict(detailed) if detailed else None,
            result=MatchResult.from_dict(result) if result else None,
        )


@dataclass(frozen=True)
class BacktestCandidate:
    """Completed historical match eligible for a backtest."""

    match_date: date
    home_team: str
    away_team: str
    home_score: int
    away_score: int


@dataclass(frozen=True)
class BacktestResultItem:
    """Outcome of one backtest candidate. Never persisted."""

    id: str
    match_date: date
    home_team: str
    away_team: str
    actual_home_score: int
    actual_away_score: int
    actual_winner: Outcome
    predicted_winner: Outcome
    predicted_probabilities: Probabilities
    is_correct: bool
    explanation: str = ""
    failed: bool = False


@dataclass(frozen=True)
class TrendPoint:
    name: str
    value: int  # percent
    label: str


@dataclass(frozen=True)
class AccuracySnapshot:
    accuracy: int  # percent
    total_predictions: int
    finished_predictions: int = 0
    correct_predictions: int = 0
    trend: tuple[TrendPoint, ...] = ()
