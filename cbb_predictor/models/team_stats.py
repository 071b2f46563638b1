"""Per-team half-scoring records and the cache record built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


@dataclass(frozen=True)
class HalfScore:
    """Points scored and allowed by one team in one half."""

    scored: int
    allowed: int

    def to_dict(self) -> Dict:
        return {"scored": self.scored, "allowed": self.allowed}

    @classmethod
    def from_dict(cls, data: Dict) -> "HalfScore":
        return cls(scored=int(data.get("scored", 0)), allowed=int(data.get("allowed", 0)))


@dataclass(frozen=True)
class GameStatRecord:
    """One completed game from a single team's point of view."""

    game_id: str
    date: str  # ISO YYYY-MM-DD
    opponent_id: str
    is_home: bool
    first_half: HalfScore
    second_half: HalfScore
    opponent: str = ""
    opponent_rating: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "game_id": self.game_id,
            "date": self.date,
            "opponent": self.opponent,
            "opponent_id": self.opponent_id,
            "is_home": self.is_home,
            "opponent_rating": self.opponent_rating,
            "first_half": self.first_half.to_dict(),
            "second_half": self.second_half.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GameStatRecord":
        rating = data.get("opponent_rating")
        return cls(
            game_id=str(data["game_id"]),
            date=str(data.get("date", "")),
            opponent=str(data.get("opponent", "")),
            opponent_id=str(data.get("opponent_id", "")),
            is_home=bool(data.get("is_home", False)),
            opponent_rating=float(rating) if rating is not None else None,
            first_half=HalfScore.from_dict(data.get("first_half", {})),
            second_half=HalfScore.from_dict(data.get("second_half", {})),
        )


@dataclass(frozen=True)
class HalfStats:
    """Averaged points for one half over ``games_played`` games."""

    scored: float = 0.0
    allowed: float = 0.0
    games_played: int = 0

    def to_dict(self) -> Dict:
        return {"scored": self.scored, "allowed": self.allowed, "games_played": self.games_played}

    @classmethod
    def from_dict(cls, data: Dict) -> "HalfStats":
        return cls(
            scored=float(data.get("scored", 0.0)),
            allowed=float(data.get("allowed", 0.0)),
            games_played=int(data.get("games_played", 0)),
        )


@dataclass(frozen=True)
class SplitAverages:
    first_half: HalfStats = field(default_factory=HalfStats)
    second_half: HalfStats = field(default_factory=HalfStats)

    def to_dict(self) -> Dict:
        return {"first_half": self.first_half.to_dict(), "second_half": self.second_half.to_dict()}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "SplitAverages":
        data = data or {}
        return cls(
            first_half=HalfStats.from_dict(data.get("first_half", {})),
            second_half=HalfStats.from_dict(data.get("second_half", {})),
        )


@dataclass(frozen=True)
class StrengthOfSchedule:
    average: float
    weighted_average: float  # recency weighted
    games_with_ratings: int

    def to_dict(self) -> Dict:
        return {
            "average": self.average,
            "weighted_average": self.weighted_average,
            "games_with_ratings": self.games_with_ratings,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "StrengthOfSchedule":
        return cls(
            average=float(data.get("average", 0.0)),
            weighted_average=float(data.get("weighted_average", 0.0)),
            games_with_ratings=int(data.get("games_with_ratings", 0)),
        )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; a trailing ``Z`` and naive values are read as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class TeamStatsCache:
    """Cached game history and derived averages for one team.

    ``games`` is date-descending and unique by ``game_id``. Records are
    rebuilt wholesale on refresh (see ``stats.aggregation.build_stats_cache``).
    """

    team_id: str
    team_name: str
    last_updated: datetime
    games: List[GameStatRecord] = field(default_factory=list)
    season_averages: SplitAverages = field(default_factory=SplitAverages)
    last5_averages: SplitAverages = field(default_factory=SplitAverages)
    weighted_averages: SplitAverages = field(default_factory=SplitAverages)
    strength_of_schedule: Optional[StrengthOfSchedule] = None

    @property
    def games_count(self) -> int:
        return len(self.games)

    def to_dict(self) -> Dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "last_updated": self.last_updated.isoformat(),
            "games": [g.to_dict() for g in self.games],
            "season_averages": self.season_averages.to_dict(),
            "last5_averages": self.last5_averages.to_dict(),
            "weighted_averages": self.weighted_averages.to_dict(),
            "strength_of_schedule": (
                self.strength_of_schedule.to_dict() if self.strength_of_schedule else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "TeamStatsCache":
        sos = data.get("strength_of_schedule")
        return cls(
            team_id=str(data["team_id"]),
            team_name=str(data.get("team_name", data["team_id"])),
            last_updated=parse_timestamp(data["last_updated"]),
            games=[GameStatRecord.from_dict(g) for g in data.get("games", [])],
            season_averages=SplitAverages.from_dict(data.get("season_averages")),
            last5_averages=SplitAverages.from_dict(data.get("last5_averages")),
            weighted_averages=SplitAverages.from_dict(data.get("weighted_averages")),
            strength_of_schedule=StrengthOfSchedule.from_dict(sos) if sos else None,
        )


@dataclass(frozen=True)
class CachedTeamSummary:
    """Lightweight listing entry for a cached team."""

    team_id: str
    team_name: str
    games_count: int
