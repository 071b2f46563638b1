"""Runtime configuration for team resolution and the stats cache.

The matching thresholds and refresh intervals were tuned by hand against the
NCAA scoreboard feed and the TeamRankings exports. They are kept here as
named, overridable values rather than being scattered through the code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

NCAA_API_BASE = "https://ncaa-api.henrygd.me"


@dataclass
class MatchingThresholds:
    # Team stats cache resolver
    likely_match: float = 0.85
    suggestion_floor: float = 0.4
    suggestion_limit: int = 5

    # TeamRankings table lookup
    ranking_variant: float = 0.9
    ranking_fuzzy: float = 0.7
    ranking_containment: float = 0.6
    ranking_containment_floor: float = 0.85
    ranking_core_name: float = 0.95
    candidate_threshold: float = 0.5
    candidate_containment_boost: float = 0.7
    candidate_limit: int = 10


@dataclass
class StatsCacheConfig:
    data_dir: str = "data"
    cache_dir: Optional[str] = None
    aliases_file: Optional[str] = None
    ratings_file: Optional[str] = None
    rankings_dir: Optional[str] = None

    cache_ttl: timedelta = timedelta(hours=6)
    grace_period: timedelta = timedelta(minutes=10)
    full_lookback_days: int = 30
    incremental_lookback_days: int = 7
    max_consecutive_failures: int = 3

    api_base: str = NCAA_API_BASE
    scoreboard_timeout_seconds: float = 10.0
    detail_timeout_seconds: float = 8.0
    schedule_timezone: str = "US/Eastern"

    rankings_reload_interval: timedelta = timedelta(minutes=5)
    thresholds: MatchingThresholds = field(default_factory=MatchingThresholds)

    def __post_init__(self):
        base = Path(self.data_dir)
        if self.cache_dir is None:
            self.cache_dir = str(base / "teams")
        if self.aliases_file is None:
            self.aliases_file = str(base / "team-aliases.json")
        if self.ratings_file is None:
            self.ratings_file = str(base / "ratings.json")
        if self.rankings_dir is None:
            self.rankings_dir = str(base / "team-rankings")

    @classmethod
    def from_env(cls, **overrides) -> "StatsCacheConfig":
        """Build a config from ``CBB_*`` / ``NCAA_API_BASE`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        kwargs = {}
        data_dir = os.getenv("CBB_DATA_DIR")
        if data_dir:
            kwargs["data_dir"] = data_dir
        api_base = os.getenv("NCAA_API_BASE")
        if api_base:
            kwargs["api_base"] = api_base.rstrip("/")
        ttl_hours = _env_float("CBB_CACHE_TTL_HOURS")
        if ttl_hours is not None:
            kwargs["cache_ttl"] = timedelta(hours=ttl_hours)
        grace_minutes = _env_float("CBB_GRACE_MINUTES")
        if grace_minutes is not None:
            kwargs["grace_period"] = timedelta(minutes=grace_minutes)
        kwargs.update(overrides)
        return cls(**kwargs)


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be numeric, got {raw!r}")
