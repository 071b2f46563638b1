"""Static team ratings table (KenPom, NET, BPI, ...) used for opponent strength."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .storage import read_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamRatings:
    name: str = ""
    kenpom: Optional[float] = None  # adjusted efficiency margin
    net: Optional[float] = None  # NET ranking (lower is better)
    bpi: Optional[float] = None
    sagarin: Optional[float] = None
    massey: Optional[float] = None
    kpi: Optional[float] = None
    srs: Optional[float] = None
    t_rank: Optional[float] = None
    last_updated: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict, last_updated: Optional[str] = None) -> "TeamRatings":
        return cls(
            name=str(data.get("name", "")),
            kenpom=_opt_float(data.get("kenPom")),
            net=_opt_float(data.get("net")),
            bpi=_opt_float(data.get("bpi")),
            sagarin=_opt_float(data.get("sagarin")),
            massey=_opt_float(data.get("massey")),
            kpi=_opt_float(data.get("kpi")),
            srs=_opt_float(data.get("srs")),
            t_rank=_opt_float(data.get("tRank")),
            last_updated=last_updated,
        )

    @property
    def primary(self) -> Optional[float]:
        """KenPom, else ``100 - NET rank``, else BPI, else T-Rank.

        Zero counts as missing at every step.
        """
        net_score = 100 - self.net if self.net else None
        return self.kenpom or net_score or self.bpi or self.t_rank or None


def _opt_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RatingsTable:
    """Read-only lookup over ``{"lastUpdated": ..., "teams": {team_id: {...}}}``."""

    def __init__(self, payload: Optional[Dict] = None):
        payload = payload or {}
        self.last_updated: Optional[str] = payload.get("lastUpdated")
        teams = payload.get("teams") or {}
        self._teams: Dict[str, TeamRatings] = {
            str(team_id): TeamRatings.from_dict(row, self.last_updated)
            for team_id, row in teams.items()
            if isinstance(row, dict)
        }

    @classmethod
    def from_file(cls, path: str) -> "RatingsTable":
        data = read_json(Path(path))
        if data is None:
            logger.warning("Ratings file %s unavailable; opponent ratings disabled", path)
        return cls(data)

    def get_team_ratings(self, team_id: str) -> Optional[TeamRatings]:
        return self._teams.get(team_id)

    def get_primary_rating(self, team_id: str) -> Optional[float]:
        ratings = self._teams.get(team_id)
        return ratings.primary if ratings else None

    def has_ratings(self, team_id: str) -> bool:
        return team_id in self._teams

    def rated_team_ids(self) -> List[str]:
        return list(self._teams)
