"""
Team stats cache manager: resolution, staleness policy and refresh.

Per-team states::

    NO_CACHE --fetch >=1 game--> FRESH
    NO_CACHE --fetch 0 games---> EMPTY
    EMPTY    --full re-fetch on every call; >=1 game--> FRESH
    FRESH    --age >= TTL (and outside grace)--> STALE
    STALE    --incremental fetch, merged by game id--> FRESH
    STALE    --fetch fails--> served as-is with stale=True

A record updated within the grace period counts as fresh even when past the
TTL, so a bulk preload is not immediately followed by a refresh storm.
Nothing runs in the background: every transition happens inside a caller's
request. The manager never raises for fetch problems; it always answers with
data, stale data, or suggestions.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..config import StatsCacheConfig
from ..data.alias_store import AliasStore
from ..data.ingestion.game_history import HistoricalGameFetcher, HistoryFetchReport
from ..data.ratings import RatingsTable
from ..data.scrapers.ncaa_scoreboard import NCAAScoreboardClient
from ..data.team_name_resolver import Match, TeamNameResolver, TeamSuggestion
from ..models.team_stats import TeamStatsCache
from .aggregation import build_stats_cache, merge_games
from .cache_store import TeamStatsStore

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    NO_CACHE = "no_cache"
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class TeamStatsResult:
    """What callers get back; ``cache`` is only ``None`` from ``check_status``."""

    cache: Optional[TeamStatsCache]
    stale: bool
    matched: bool
    state: CacheState
    match: Optional[Match] = None
    refreshed: bool = False  # a fetch produced this record during the call
    suggestions: List[TeamSuggestion] = field(default_factory=list)


def _require(value: str, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} is required")
    return str(value).strip()


class StatsCacheManager:
    """The entry point other code calls for per-team half stats."""

    def __init__(
        self,
        store: TeamStatsStore,
        resolver: TeamNameResolver,
        fetcher: HistoricalGameFetcher,
        config: Optional[StatsCacheConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.fetcher = fetcher
        self.config = config or StatsCacheConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(
        cls,
        config: StatsCacheConfig,
        feed=None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "StatsCacheManager":
        """Wire the default file-backed store, aliases, ratings and NCAA feed."""
        store = TeamStatsStore(config.cache_dir)
        aliases = AliasStore(config.aliases_file)
        ratings = RatingsTable.from_file(config.ratings_file)
        if feed is None:
            feed = NCAAScoreboardClient(
                base_url=config.api_base,
                scoreboard_timeout=config.scoreboard_timeout_seconds,
                detail_timeout=config.detail_timeout_seconds,
            )
        fetcher = HistoricalGameFetcher(
            feed,
            ratings=ratings,
            clock=clock,
            max_consecutive_failures=config.max_consecutive_failures,
            schedule_timezone=config.schedule_timezone,
        )
        resolver = TeamNameResolver(store, aliases, thresholds=config.thresholds)
        return cls(store, resolver, fetcher, config=config, clock=clock)

    # ------------------------------------------------------------------
    # Staleness policy
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self.clock()
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    def cache_age(self, cache: TeamStatsCache):
        return self._now() - cache.last_updated

    def is_stale(self, cache: TeamStatsCache) -> bool:
        return self.cache_age(cache) >= self.config.cache_ttl

    def is_within_grace(self, cache: TeamStatsCache) -> bool:
        return self.cache_age(cache) < self.config.grace_period

    def classify(self, cache: Optional[TeamStatsCache]) -> CacheState:
        if cache is None:
            return CacheState.NO_CACHE
        if not cache.games:
            return CacheState.EMPTY
        if not self.is_stale(cache) or self.is_within_grace(cache):
            return CacheState.FRESH
        return CacheState.STALE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, team_id: str, team_name: str) -> Optional[Match]:
        return self.resolver.resolve(_require(team_id, "team_id"), _require(team_name, "team_name"))

    def suggestions(self, team_name: str, limit: Optional[int] = None) -> List[TeamSuggestion]:
        return self.resolver.suggestions(_require(team_name, "team_name"), limit=limit)

    def check_status(self, team_id: str, team_name: str) -> TeamStatsResult:
        """Cache-only lookup; never touches the network."""
        team_id = _require(team_id, "team_id")
        team_name = _require(team_name, "team_name")

        match = self.resolver.resolve(team_id, team_name)
        cache = self.store.load(match.resolved_id) if match else None
        if cache is not None:
            state = self.classify(cache)
            return TeamStatsResult(cache, stale=state == CacheState.STALE, matched=True, state=state, match=match)

        return TeamStatsResult(
            None,
            stale=False,
            matched=False,
            state=CacheState.NO_CACHE,
            suggestions=self.resolver.suggestions(team_name),
        )

    def get_team_stats(self, team_id: str, team_name: str) -> TeamStatsResult:
        """Resolve, refresh as the staleness policy requires, and return stats."""
        team_id = _require(team_id, "team_id")
        team_name = _require(team_name, "team_name")

        match = self.resolver.resolve(team_id, team_name)
        cache = self.store.load(match.resolved_id) if match else None
        if cache is None:
            return self._bootstrap(team_id, team_name)

        state = self.classify(cache)
        if state == CacheState.FRESH:
            if self.is_stale(cache):
                logger.info("Cache for %s was updated within the grace period, using it", match.resolved_id)
            return TeamStatsResult(cache, stale=False, matched=True, state=state, match=match)
        if state == CacheState.EMPTY:
            return self._retry_empty(match, cache)
        return self._refresh_stale(match, cache)

    def get_matchup_stats(
        self,
        home_id: str,
        home_name: str,
        away_id: str,
        away_name: str,
        concurrent: bool = True,
    ) -> Tuple[TeamStatsResult, TeamStatsResult]:
        """Home and away lookups, optionally on two worker threads."""
        if not concurrent:
            return self.get_team_stats(home_id, home_name), self.get_team_stats(away_id, away_name)
        with ThreadPoolExecutor(max_workers=2) as pool:
            home = pool.submit(self.get_team_stats, home_id, home_name)
            away = pool.submit(self.get_team_stats, away_id, away_name)
            return home.result(), away.result()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _fetch(self, team_id: str, team_name: str, days_back: int) -> Optional[HistoryFetchReport]:
        try:
            return self.fetcher.fetch_with_report(team_id, team_name, days_back)
        except Exception as exc:
            logger.error("Failed to fetch games for %s (%s): %s", team_name, team_id, exc)
            return None

    def _save(self, cache: TeamStatsCache) -> None:
        try:
            self.store.save(cache)
        except OSError as exc:
            logger.error("Failed to save cache for team %s: %s", cache.team_id, exc)

    def _next_timestamp(self, previous: Optional[TeamStatsCache] = None) -> datetime:
        now = self._now()
        if previous is not None and previous.last_updated > now:
            return previous.last_updated
        return now

    def _bootstrap(self, team_id: str, team_name: str) -> TeamStatsResult:
        logger.info("No cache found for team %s (%s), attempting to fetch...", team_id, team_name)
        report = self._fetch(team_id, team_name, self.config.full_lookback_days)

        if report is not None and report.games:
            cache = build_stats_cache(team_id, team_name, report.games, self._next_timestamp())
            self._save(cache)
            match = Match(team_id, team_name, 1.0, "fetched")
            return TeamStatsResult(cache, stale=False, matched=True, state=CacheState.FRESH, match=match, refreshed=True)

        logger.info("Could not find stats for team %s (%s), generating suggestions...", team_id, team_name)
        suggestions = self.resolver.suggestions(team_name)
        empty = build_stats_cache(team_id, team_name, [], self._next_timestamp())
        self._save(empty)
        return TeamStatsResult(
            empty,
            stale=False,
            matched=False,
            state=CacheState.EMPTY,
            suggestions=suggestions,
        )

    def _retry_empty(self, match: Match, cache: TeamStatsCache) -> TeamStatsResult:
        resolved_id = match.resolved_id
        logger.info("Cache for team %s has 0 games, attempting full %d-day fetch...",
                    resolved_id, self.config.full_lookback_days)
        report = self._fetch(resolved_id, cache.team_name, self.config.full_lookback_days)
        if report is None:
            return TeamStatsResult(cache, stale=True, matched=True, state=CacheState.EMPTY, match=match)
        if not report.games:
            return TeamStatsResult(cache, stale=False, matched=True, state=CacheState.EMPTY, match=match)

        updated = build_stats_cache(resolved_id, cache.team_name, report.games, self._next_timestamp(cache))
        self._save(updated)
        return TeamStatsResult(updated, stale=False, matched=True, state=CacheState.FRESH, match=match, refreshed=True)

    def _refresh_stale(self, match: Match, cache: TeamStatsCache) -> TeamStatsResult:
        resolved_id = match.resolved_id
        logger.info("Cache stale for team %s, fetching new games...", resolved_id)
        report = self._fetch(resolved_id, cache.team_name, self.config.incremental_lookback_days)

        if report is None or (report.halted and not report.games):
            logger.warning("Failed to update stats for team %s, using stale cache", resolved_id)
            return TeamStatsResult(cache, stale=True, matched=True, state=CacheState.STALE, match=match)

        known = {g.game_id for g in cache.games}
        fresh_games = [g for g in report.games if g.game_id not in known]
        if fresh_games:
            logger.info("Found %d new games for team %s", len(fresh_games), resolved_id)

        updated = build_stats_cache(
            resolved_id,
            cache.team_name,
            merge_games(cache.games, fresh_games),
            self._next_timestamp(cache),
        )
        self._save(updated)
        return TeamStatsResult(updated, stale=False, matched=True, state=CacheState.FRESH, match=match, refreshed=True)
