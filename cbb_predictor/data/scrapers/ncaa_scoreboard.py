"""NCAA men's D1 scoreboard and game-detail client.

Endpoints (ncaa-api mirror of ncaa.com):

  /scoreboard/basketball-men/d1/YYYY/MM/DD/all-conf   one day's matchups
  /game/{game_id}                                      contest detail with linescores

The feed has no per-team schedule endpoint, so team histories are assembled
by walking scoreboards day by day (see ``ingestion.game_history``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import requests

from ...config import NCAA_API_BASE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodScore:
    period: str
    home: str
    visit: str


@dataclass(frozen=True)
class ScoreboardGame:
    """One matchup as listed on a day's scoreboard."""

    game_id: str
    home_slug: str
    away_slug: str
    home_name: str = ""
    away_name: str = ""
    start_date: str = ""
    start_time: str = ""
    start_time_epoch: Optional[int] = None
    game_state: str = ""
    current_period: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    period_scores: List[PeriodScore] = field(default_factory=list)


@dataclass(frozen=True)
class ContestTeam:
    team_id: str
    is_home: bool
    name_full: str = ""
    name_short: str = ""
    seoname: str = ""


@dataclass(frozen=True)
class GameDetail:
    game_id: str
    start_date: str
    teams: List[ContestTeam]
    period_scores: List[PeriodScore]


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_periods(rows) -> List[PeriodScore]:
    if not isinstance(rows, list):
        return []
    return [
        PeriodScore(
            period=str(r.get("period", "")),
            home=str(r.get("home", "")),
            visit=str(r.get("visit", "")),
        )
        for r in rows
        if isinstance(r, dict)
    ]


def _as_dict(value) -> Dict:
    return value if isinstance(value, dict) else {}


def _require_object(payload, what: str) -> Dict:
    if not isinstance(payload, dict):
        raise ValueError(f"{what} payload is {type(payload).__name__}, expected a JSON object")
    return payload


def parse_scoreboard(payload: Dict) -> List[ScoreboardGame]:
    """Scoreboard entries with a game id; raises ``ValueError`` for a non-object payload."""
    payload = _require_object(payload, "Scoreboard")
    games: List[ScoreboardGame] = []
    entries = payload.get("games")
    for entry in entries if isinstance(entries, list) else []:
        game = entry.get("game") if isinstance(entry, dict) else None
        if not isinstance(game, dict) or not game.get("gameID"):
            continue
        home = _as_dict(game.get("home"))
        away = _as_dict(game.get("away"))
        home_names = _as_dict(home.get("names"))
        away_names = _as_dict(away.get("names"))
        games.append(
            ScoreboardGame(
                game_id=str(game["gameID"]),
                home_slug=str(home_names.get("seo", "")),
                away_slug=str(away_names.get("seo", "")),
                home_name=str(home_names.get("full") or home_names.get("short") or ""),
                away_name=str(away_names.get("full") or away_names.get("short") or ""),
                start_date=str(game.get("startDate", "")),
                start_time=str(game.get("startTime", "")),
                start_time_epoch=_to_int(game.get("startTimeEpoch")),
                game_state=str(game.get("gameState", "")),
                current_period=str(game.get("currentPeriod", "")),
                home_score=_to_int(home.get("score")),
                away_score=_to_int(away.get("score")),
                period_scores=_parse_periods(game.get("linescores")),
            )
        )
    return games


def parse_game_detail(payload: Dict) -> Optional[GameDetail]:
    payload = _require_object(payload, "Game detail")
    contests = payload.get("contests")
    if not isinstance(contests, list) or not contests or not isinstance(contests[0], dict):
        return None
    contest = contests[0]
    rows = contest.get("teams")
    teams = [
        ContestTeam(
            team_id=str(t.get("teamId", "")),
            is_home=bool(t.get("isHome", False)),
            name_full=str(t.get("nameFull", "")),
            name_short=str(t.get("nameShort", "")),
            seoname=str(t.get("seoname", "")),
        )
        for t in (rows if isinstance(rows, list) else [])
        if isinstance(t, dict)
    ]
    return GameDetail(
        game_id=str(contest.get("id", "")),
        start_date=str(contest.get("startDate") or ""),
        teams=teams,
        period_scores=_parse_periods(contest.get("linescores")),
    )


class NCAAScoreboardClient:
    """Thin HTTP client.

    Transport errors propagate as ``requests.RequestException``; a response
    that is not a JSON object raises ``ValueError``.
    """

    def __init__(
        self,
        base_url: str = NCAA_API_BASE,
        scoreboard_timeout: float = 10.0,
        detail_timeout: float = 8.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.scoreboard_timeout = scoreboard_timeout
        self.detail_timeout = detail_timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
                "Accept": "application/json",
            }
        )

    def scoreboard_url(self, day: date) -> str:
        return f"{self.base_url}/scoreboard/basketball-men/d1/{day:%Y/%m/%d}/all-conf"

    def get_scoreboard(self, day: date) -> List[ScoreboardGame]:
        response = self.session.get(self.scoreboard_url(day), timeout=self.scoreboard_timeout)
        response.raise_for_status()
        return parse_scoreboard(response.json())

    def get_game_detail(self, game_id: str) -> Optional[GameDetail]:
        response = self.session.get(f"{self.base_url}/game/{game_id}", timeout=self.detail_timeout)
        response.raise_for_status()
        return parse_game_detail(response.json())
