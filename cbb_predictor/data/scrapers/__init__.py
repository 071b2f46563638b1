"""Scraper exports."""

from .ncaa_scoreboard import (
    ContestTeam,
    GameDetail,
    NCAAScoreboardClient,
    PeriodScore,
    ScoreboardGame,
    parse_game_detail,
    parse_scoreboard,
)

__all__ = [
    "ContestTeam",
    "GameDetail",
    "NCAAScoreboardClient",
    "PeriodScore",
    "ScoreboardGame",
    "parse_game_detail",
    "parse_scoreboard",
]
