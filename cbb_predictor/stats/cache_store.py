"""On-disk persistence for per-team stats cache records (one JSON file per team)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from ..data.storage import read_json, write_json_atomic
from ..models.team_stats import CachedTeamSummary, TeamStatsCache

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]")


class TeamStatsStore:
    """Reads and writes ``<cache_dir>/<team_id>.json``.

    Each save rewrites the whole record. There is no lock: two concurrent
    refreshes of one team both write, and the last writer wins.
    """

    def __init__(self, cache_dir: str):
        self.cache_dir = Path(cache_dir)

    def path_for(self, team_id: str) -> Path:
        safe = _UNSAFE_FILENAME_RE.sub("_", team_id.strip())
        return self.cache_dir / f"{safe}.json"

    def exists(self, team_id: str) -> bool:
        return bool(team_id and team_id.strip()) and self.path_for(team_id).exists()

    def load(self, team_id: str) -> Optional[TeamStatsCache]:
        if not team_id or not team_id.strip():
            return None
        path = self.path_for(team_id)
        data = read_json(path)
        if data is None:
            return None
        try:
            return TeamStatsCache.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed stats cache %s: %s", path, exc)
            return None

    def save(self, cache: TeamStatsCache) -> Path:
        path = self.path_for(cache.team_id)
        write_json_atomic(path, cache.to_dict())
        return path

    def list_teams(self) -> List[CachedTeamSummary]:
        """Summaries for every readable record in the cache directory."""
        if not self.cache_dir.exists():
            return []
        teams: List[CachedTeamSummary] = []
        for path in sorted(self.cache_dir.glob("*.json")):
            data = read_json(path)
            if data is None or "team_id" not in data:
                continue
            games = data.get("games", [])
            if not isinstance(games, list):
                logger.warning("Skipping %s: games is %s, not a list", path, type(games).__name__)
                continue
            teams.append(
                CachedTeamSummary(
                    team_id=str(data["team_id"]),
                    team_name=str(data.get("team_name", data["team_id"])),
                    games_count=len(games),
                )
            )
        return teams
