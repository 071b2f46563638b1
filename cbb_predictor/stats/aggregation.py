"""Half-scoring averages, opponent-strength weighting and schedule strength."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, List, Optional

import numpy as np

from ..models.team_stats import (
    GameStatRecord,
    HalfStats,
    SplitAverages,
    StrengthOfSchedule,
    TeamStatsCache,
)

RECENT_FORM_GAMES = 5
SOS_RECENCY_DECAY = 0.15


def _round1(value: float) -> float:
    # Half-up, so 70.25 -> 70.3 regardless of float banker's rounding.
    return math.floor(value * 10 + 0.5) / 10


def _half_matrix(games: List[GameStatRecord]) -> np.ndarray:
    """Rows are games; columns are 1H scored, 1H allowed, 2H scored, 2H allowed."""
    return np.array(
        [
            [g.first_half.scored, g.first_half.allowed, g.second_half.scored, g.second_half.allowed]
            for g in games
        ],
        dtype=float,
    )


def _split_from_means(means: np.ndarray, games_played: int) -> SplitAverages:
    return SplitAverages(
        first_half=HalfStats(_round1(means[0]), _round1(means[1]), games_played),
        second_half=HalfStats(_round1(means[2]), _round1(means[3]), games_played),
    )


def averages(games: List[GameStatRecord]) -> SplitAverages:
    """Plain per-half means rounded to one decimal.

    An empty list yields all zeros with ``games_played == 0``.
    """
    if not games:
        return SplitAverages()
    return _split_from_means(_half_matrix(games).mean(axis=0), len(games))


def weighted_averages(games: List[GameStatRecord]) -> SplitAverages:
    """Per-half means with games against stronger opponents counting more.

    A rated game is weighted ``rating / mean(rating of rated games)``; unrated
    games count 1.0. Falls back to :func:`averages` when nothing is rated or
    when any weight would be zero or negative (ratings of mixed sign, such as
    KenPom margins).
    """
    if not games:
        return SplitAverages()

    rated = [g.opponent_rating for g in games if g.opponent_rating is not None]
    if not rated:
        return averages(games)

    mean_rating = float(np.mean(rated))
    if mean_rating == 0:
        return averages(games)

    weights = np.array(
        [
            g.opponent_rating / mean_rating if g.opponent_rating is not None else 1.0
            for g in games
        ],
        dtype=float,
    )
    if (weights <= 0).any():
        return averages(games)

    means = np.average(_half_matrix(games), axis=0, weights=weights)
    return _split_from_means(means, len(games))


def strength_of_schedule(games: List[GameStatRecord]) -> Optional[StrengthOfSchedule]:
    """Opponent rating summary, or ``None`` when no opponent is rated.

    ``games`` must be most-recent first; the weighted average applies
    ``exp(-0.15 * i)`` to the i-th most recent rated game.
    """
    ratings = np.array([g.opponent_rating for g in games if g.opponent_rating is not None], dtype=float)
    if ratings.size == 0:
        return None

    decay = np.exp(-SOS_RECENCY_DECAY * np.arange(ratings.size))
    return StrengthOfSchedule(
        average=_round1(float(ratings.mean())),
        weighted_average=_round1(float(np.average(ratings, weights=decay))),
        games_with_ratings=int(ratings.size),
    )


def sort_games(games: Iterable[GameStatRecord]) -> List[GameStatRecord]:
    """Most recent first; ties keep a stable order by game id."""
    return sorted(games, key=lambda g: (g.date, g.game_id), reverse=True)


def merge_games(
    existing: Iterable[GameStatRecord], incoming: Iterable[GameStatRecord]
) -> List[GameStatRecord]:
    """Union by ``game_id``; an id already on file is never replaced."""
    merged = {}
    for game in existing:
        merged.setdefault(game.game_id, game)
    for game in incoming:
        merged.setdefault(game.game_id, game)
    return list(merged.values())


def build_stats_cache(
    team_id: str,
    team_name: str,
    games: Iterable[GameStatRecord],
    last_updated: datetime,
) -> TeamStatsCache:
    """Assemble a fresh cache record with all derived statistics."""
    ordered = sort_games(merge_games([], games))
    return TeamStatsCache(
        team_id=team_id,
        team_name=team_name,
        last_updated=last_updated,
        games=ordered,
        season_averages=averages(ordered),
        last5_averages=averages(ordered[:RECENT_FORM_GAMES]),
        weighted_averages=weighted_averages(ordered),
        strength_of_schedule=strength_of_schedule(ordered),
    )
