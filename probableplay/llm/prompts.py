"""
Prompt builders for every model request the engine makes.

Wording is free to change; callers depend only on the JSON shapes the
prompts ask for, which the parsers in forecast/ and llm/lookups.py read.
"""

import json
from datetime import date
from typing import Optional, Sequence

from probableplay.models import Match

STANDARD_SYSTEM_INSTRUCTION = (
    "You are an expert sports analyst. Provide data-driven probabilities in JSON."
)

DETAILED_SYSTEM_INSTRUCTION = (
    "You are a ruthless algorithmic betting model. You do not guess. You only "
    "predict what is supported by hard statistics (xG, H2H, Form). If data is "
    "conflicting, choose the conservative outcome. Be precise."
)

SCHEDULE_SYSTEM_INSTRUCTION = (
    "You are a sports scheduler helper. Accurately retrieve today's fixtures "
    "and output valid JSON with strictly UTC timestamps."
)

BACKTEST_SYSTEM_INSTRUCTION = (
    "You are an expert sports analyst running a historical simulation. You only "
    "know what was public on the simulation date."
)


def readable_date(day: date) -> str:
    """e.g. Sunday, March 10, 2024"""
    return f"{day.strftime('%A, %B')} {day.day}, {day.year}"


def build_standard_prompt(match: Match, today: date) -> str:
    """Win/draw/loss probabilities plus a short written analysis."""
    return f"""Analyze the {match.sport} match between {match.home_team} (Home) and {match.away_team} (Away) scheduled for {readable_date(today)}.
League: {match.league}.

Use Google Search to find:
1. Recent form, H2H history, injuries.
2. League standings context.

Based on this data, estimate the probabilities of a Home Win, Draw, and Away Win.

Strictly return a JSON object:
{{
  "homeWinProbability": number (0-1),
  "drawProbability": number (0-1),
  "awayWinProbability": number (0-1),
  "summary": "Concise 2-3 sentence summary",
  "detailedAnalysis": "2 paragraphs analyzing form and key factors",
  "keyFactors": ["List of 3-5 key brief strings"]
}}"""


def build_detailed_prompt(match: Match, today: date) -> str:
    """High precision forecast: exact score, scorers, period winners, event percentages."""
    return f"""Perform a PROFESSIONAL statistical forecast for the {match.sport} match between {match.home_team} and {match.away_team} ({readable_date(today)}).

PROTOCOL:
1. DATA SEARCH (Mandatory):
   - Expected Goals (xG) over the last 5 matches for both teams.
   - Head-to-Head results over the last 3 years.
   - Confirmed injury list today.
   - Referee yellow/red card average.

2. LOGIC:
   - Compare attacking strength vs defensive weakness.
   - If a key scorer is injured, reduce the Total Goals prediction.
   - If Head-to-Head is tight, predict a Draw or a narrow win.
   - CONSISTENCY CHECK: a 0-0 prediction has no scorers. "Over 2.5 goals" needs an exact score with 3+ goals.

REQUIRED OUTPUT DATA:
1. EXACT SCORE: most probable numeric scoreline (e.g. "2-1").
2. TOTAL GOALS: "Under X" or "Over X".
3. FIRST TEAM TO SCORE.
4. HALF TIME / SECOND HALF winner.
5. SCORERS: top 2-3 players by xG with method (Shot, Header, Penalty, Free Kick, Own Goal).
6. PROBABILITIES: % chance for each scoring method.
7. RED CARDS: "0" or "1+" with a percentage.
8. REASONING citing specific stats.

Strictly return a JSON object matching this schema:
{{
  "predictedScore": "string",
  "totalGoals": "string",
  "firstTeamToScore": "string",
  "halfTimeWinner": "Home" | "Draw" | "Away",
  "secondHalfWinner": "Home" | "Draw" | "Away",
  "likelyScorers": [
    {{"player": "Name", "team": "Team Name", "method": "Shot", "likelihood": "45%"}}
  ],
  "scoringMethodProbabilities": {{
    "penalty": "25%",
    "freeKick": "5%",
    "cornerHeader": "15%",
    "ownGoal": "2%",
    "outsideBox": "10%"
  }},
  "redCards": "0 (90%)",
  "confidenceScore": "High" | "Medium" | "Low",
  "reasoning": "Brief data-driven explanation."
}}"""


def build_backtest_prompt(
    home_team: str,
    away_team: str,
    match_date: date,
    simulation_date: date,
) -> str:
    """Prediction as of the day before kickoff, without looking up the real outcome."""
    return f"""SIMULATION DATE: {simulation_date.isoformat()}.
Predict {home_team} vs {away_team} ({match_date.isoformat()}).
Reason only with information available on or before the simulation date.
Do not check actual results.
Return JSON: {{"homeWinProbability": 0.5, "drawProbability": 0.2, "awayWinProbability": 0.3, "explanation": "..."}}"""


def build_results_prompt(matches: Sequence[Match]) -> str:
    """Final scores for a batch of previously predicted matches."""
    listing = [
        {"id": m.id, "home": m.home_team, "away": m.away_team, "date": m.start_time}
        for m in matches
    ]
    return f"""I have a list of sports matches. I need to know the final score and winner for each.
Matches: {json.dumps(listing, ensure_ascii=False)}
Use Google Search. Output strictly a JSON array: [{{"id": "...", "homeScore": 1, "awayScore": 0, "winner": "Home", "isFinished": true}}]"""


def build_candidates_prompt(
    sport: str,
    league: str,
    teams: Sequence[str],
    count: int,
) -> str:
    """Most recent completed matches involving any of the teams."""
    return f"""Find the last {count} COMPLETED matches involving ANY of: {' OR '.join(teams)}.
Sport: {sport}, League: {league}.
Output JSON array: [{{"date": "YYYY-MM-DD", "homeTeam": "Name", "awayTeam": "Name", "homeScore": 1, "awayScore": 2}}]"""


def build_schedule_prompt(today: date, leagues: Optional[Sequence[str]] = None) -> str:
    """Today's fixtures with UTC start times."""
    leagues = leagues or (
        "Football (Soccer): Premier League, Bundesliga, La Liga, Serie A, Ligue 1, "
        "Eredivisie, Champions League",
        "Basketball: NBA",
    )
    focus = "\n".join(f"{i}. {league}" for i, league in enumerate(leagues, start=1))
    return f"""Find the schedule for major sports matches taking place today, {readable_date(today)}.
Focus on:
{focus}

List at least 5-10 key matches if available.

CRITICAL TIMEZONE INSTRUCTION:
- Return all start times in UTC ISO 8601 format ending with 'Z'.
- FOR NBA GAMES: convert ET to UTC.

Strictly return a JSON array of objects:
[
  {{
    "sport": "Football or NBA",
    "league": "League Name",
    "homeTeam": "Home Team Name",
    "awayTeam": "Away Team Name",
    "startTime": "YYYY-MM-DDTHH:mm:ssZ"
  }}
]"""
