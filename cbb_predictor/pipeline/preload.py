"""Warm the stats cache for every team on a day's scoreboard."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from ..stats.cache_manager import StatsCacheManager, TeamStatsResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str, str, str], None]


@dataclass
class PreloadSummary:
    day: str
    total: int = 0
    cached: int = 0
    fetched: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


def collect_teams(games) -> List[Tuple[str, str]]:
    """Unique (slug, display name) pairs in scoreboard order."""
    teams: Dict[str, str] = {}
    for game in games:
        for slug, name in ((game.home_slug, game.home_name), (game.away_slug, game.away_name)):
            if slug and slug not in teams:
                teams[slug] = name or slug
    return list(teams.items())


def describe_result(result: TeamStatsResult) -> Tuple[str, str]:
    """(outcome, message) for one warmed team; outcome is cached/fetched/failed."""
    if not result.matched:
        hint = ""
        if result.suggestions:
            hint = " (try: " + ", ".join(s.team_name for s in result.suggestions[:2]) + ")"
        return "failed", f"NOT MATCHED{hint}"
    if result.cache is None or not result.cache.games:
        return "failed", "NO GAMES FOUND"
    if result.refreshed:
        return "fetched", f"{result.cache.games_count} games (updated)"
    return "cached", f"{result.cache.games_count} games (cached)"


def preload_teams(
    manager: StatsCacheManager,
    feed,
    day: Optional[date] = None,
    progress: Optional[ProgressCallback] = None,
) -> PreloadSummary:
    """
    Fetch ``day``'s scoreboard and run every team through the cache manager.

    Teams are processed one at a time so the feed sees at most one day walk
    in flight. A scoreboard failure for ``day`` itself propagates.

    Args:
        manager: Cache manager whose records are warmed
        feed: Scoreboard feed (``get_scoreboard(day)``)
        day: Schedule day, defaults to the fetcher's current Eastern day
        progress: Called with (index, total, team_id, outcome, message)

    Returns:
        PreloadSummary with per-outcome counts
    """
    day = day or manager.fetcher.today()
    started = time.monotonic()

    games = feed.get_scoreboard(day)
    teams = collect_teams(games)
    logger.info("Found %d games and %d unique teams for %s", len(games), len(teams), day.isoformat())

    summary = PreloadSummary(day=day.isoformat(), total=len(teams))
    for index, (team_id, team_name) in enumerate(teams, start=1):
        try:
            outcome, message = describe_result(manager.get_team_stats(team_id, team_name))
        except ValueError as exc:
            outcome, message = "failed", f"FAILED - {exc}"

        setattr(summary, outcome, getattr(summary, outcome) + 1)
        if outcome == "failed":
            summary.failures.append(team_id)
        if progress is not None:
            progress(index, len(teams), team_id, outcome, message)

    summary.elapsed_seconds = round(time.monotonic() - started, 2)
    logger.info(
        "Preload complete: %d teams, %d cached, %d fetched, %d failed in %.2fs",
        summary.total,
        summary.cached,
        summary.fetched,
        summary.failed,
        summary.elapsed_seconds,
    )
    return summary
