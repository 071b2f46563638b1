"""
TeamRankings half-split tables loaded from manually refreshed CSV exports.

Data files (in ``<data_dir>/team-rankings/``)::

    1h-points-per-game.csv    1h-points-allowed.csv    1h-margin.csv
    2h-points-per-game.csv    2h-points-allowed.csv    2h-margin.csv

Each has the columns ``Rank, Team, <season>, Last 3, Last 1, Home, Away,
<prior season>``; ``--`` marks a missing value. Tables are keyed by
``normalize_team_name(team)`` and reloaded lazily once they are older than
the reload interval.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pandas as pd

from ..config import MatchingThresholds
from .normalize import normalize_team_name, similarity, team_name_variants

logger = logging.getLogger(__name__)

RANKING_FILES: Dict[str, str] = {
    "first_half_ppg": "1h-points-per-game.csv",
    "first_half_allowed": "1h-points-allowed.csv",
    "first_half_margin": "1h-margin.csv",
    "second_half_ppg": "2h-points-per-game.csv",
    "second_half_allowed": "2h-points-allowed.csv",
    "second_half_margin": "2h-margin.csv",
}

# Tables tried, in order, when matching a name
LOOKUP_ORDER = ("first_half_ppg", "second_half_ppg", "first_half_allowed", "second_half_allowed")

MISSING_TOKENS = {"--", "", "null"}
EXPECTED_COLUMNS = 8

_CORE_NAME_RE = re.compile(r"^(?:university of |the )?(.+?)(?:\s+university)?$")


@dataclass(frozen=True)
class RankingRow:
    rank: int
    team: str
    season: Optional[float] = None
    last3: Optional[float] = None
    last1: Optional[float] = None
    home: Optional[float] = None
    away: Optional[float] = None
    prior_season: Optional[float] = None


RankingTable = Dict[str, RankingRow]


@dataclass
class RankingTables:
    first_half_ppg: RankingTable = field(default_factory=dict)
    first_half_allowed: RankingTable = field(default_factory=dict)
    first_half_margin: RankingTable = field(default_factory=dict)
    second_half_ppg: RankingTable = field(default_factory=dict)
    second_half_allowed: RankingTable = field(default_factory=dict)
    second_half_margin: RankingTable = field(default_factory=dict)
    loaded_at: Optional[datetime] = None

    def table(self, name: str) -> RankingTable:
        return getattr(self, name)


@dataclass(frozen=True)
class RankingMatch:
    key: str
    team: str
    confidence: float


@dataclass(frozen=True)
class RankingCandidate:
    name: str
    score: float


@dataclass
class TeamHalfRankings:
    ppg: Optional[float] = None
    points_allowed: Optional[float] = None
    margin: Optional[float] = None
    ppg_last3: Optional[float] = None
    ppg_last1: Optional[float] = None
    ppg_home: Optional[float] = None
    ppg_away: Optional[float] = None
    allowed_last3: Optional[float] = None
    allowed_last1: Optional[float] = None
    allowed_home: Optional[float] = None
    allowed_away: Optional[float] = None
    margin_last3: Optional[float] = None
    margin_last1: Optional[float] = None
    margin_home: Optional[float] = None
    margin_away: Optional[float] = None

    @classmethod
    def from_rows(
        cls, ppg: Optional[RankingRow], allowed: Optional[RankingRow], margin: Optional[RankingRow]
    ) -> "TeamHalfRankings":
        def pick(row: Optional[RankingRow], attr: str) -> Optional[float]:
            return getattr(row, attr) if row is not None else None

        return cls(
            ppg=pick(ppg, "season"),
            points_allowed=pick(allowed, "season"),
            margin=pick(margin, "season"),
            ppg_last3=pick(ppg, "last3"),
            ppg_last1=pick(ppg, "last1"),
            ppg_home=pick(ppg, "home"),
            ppg_away=pick(ppg, "away"),
            allowed_last3=pick(allowed, "last3"),
            allowed_last1=pick(allowed, "last1"),
            allowed_home=pick(allowed, "home"),
            allowed_away=pick(allowed, "away"),
            margin_last3=pick(margin, "last3"),
            margin_last1=pick(margin, "last1"),
            margin_home=pick(margin, "home"),
            margin_away=pick(margin, "away"),
        )

    def to_dict(self) -> Dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class TeamRankingsStats:
    team_name: str
    matched_name: str
    match_confidence: float
    first_half: TeamHalfRankings
    second_half: TeamHalfRankings

    def to_dict(self) -> Dict:
        return {
            "team_name": self.team_name,
            "matched_name": self.matched_name,
            "match_confidence": self.match_confidence,
            "first_half": self.first_half.to_dict(),
            "second_half": self.second_half.to_dict(),
        }


def parse_ranking_value(value) -> Optional[float]:
    """Numeric cell value; ``None`` for ``--``/blank/``null``/unparseable."""
    if value is None:
        return None
    text = str(value).strip()
    if text in MISSING_TOKENS or text.lower() == "nan":
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_ranking_file(path: Path) -> RankingTable:
    """Parse one export into a table keyed by normalized team name."""
    if not path.exists():
        logger.warning("TeamRankings CSV not found: %s", path)
        return {}
    try:
        frame = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            on_bad_lines="skip",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        logger.error("Failed to parse TeamRankings CSV %s: %s", path, exc)
        return {}

    if frame.shape[1] < EXPECTED_COLUMNS:
        logger.warning("TeamRankings CSV %s has %d columns, expected %d", path, frame.shape[1], EXPECTED_COLUMNS)
        return {}

    table: RankingTable = {}
    for values in frame.iloc[:, :EXPECTED_COLUMNS].itertuples(index=False, name=None):
        rank_value = parse_ranking_value(values[0])
        team = str(values[1]).strip() if isinstance(values[1], str) else ""
        if rank_value is None or not team:
            continue
        row = RankingRow(
            rank=int(rank_value),
            team=team,
            season=parse_ranking_value(values[2]),
            last3=parse_ranking_value(values[3]),
            last1=parse_ranking_value(values[4]),
            home=parse_ranking_value(values[5]),
            away=parse_ranking_value(values[6]),
            prior_season=parse_ranking_value(values[7]),
        )
        table[normalize_team_name(team)] = row

    logger.info("Loaded %d teams from %s", len(table), path.name)
    return table


class RankingRowStore:
    """In-memory TeamRankings tables with a timed, lazy reload.

    The clock is injected so reload timing can be driven from tests.
    """

    def __init__(
        self,
        data_dir: str,
        reload_interval: timedelta = timedelta(minutes=5),
        clock: Optional[Callable[[], datetime]] = None,
        thresholds: Optional[MatchingThresholds] = None,
    ):
        self.data_dir = Path(data_dir)
        self.reload_interval = reload_interval
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.thresholds = thresholds or MatchingThresholds()
        self._tables: Optional[RankingTables] = None

    def reload(self) -> RankingTables:
        logger.info("Loading TeamRankings data from %s", self.data_dir)
        tables = RankingTables(
            **{name: parse_ranking_file(self.data_dir / filename) for name, filename in RANKING_FILES.items()}
        )
        tables.loaded_at = self.clock()
        self._tables = tables
        return tables

    @property
    def tables(self) -> RankingTables:
        if self._tables is None or self._tables.loaded_at is None:
            return self.reload()
        if self.clock() - self._tables.loaded_at > self.reload_interval:
            return self.reload()
        return self._tables

    def is_loaded(self) -> bool:
        tables = self.tables
        return bool(tables.first_half_ppg) or bool(tables.second_half_ppg)

    def all_team_names(self) -> List[str]:
        tables = self.tables
        names = {row.team for name in RANKING_FILES for row in tables.table(name).values()}
        return sorted(names)

    def find_best_match(self, team_name: str, table: RankingTable) -> Optional[RankingMatch]:
        """Best single row for ``team_name`` in ``table``, with a confidence."""
        if not team_name or not table:
            return None
        t = self.thresholds
        normalized_search = normalize_team_name(team_name)

        if normalized_search in table:
            return RankingMatch(normalized_search, table[normalized_search].team, 1.0)

        key = self._variant_key(team_name, table)
        if key is not None:
            return RankingMatch(key, table[key].team, t.ranking_variant)

        best_key: Optional[str] = None
        best_score = 0.0
        for key in table:
            score = similarity(normalized_search, key)
            if score > t.ranking_fuzzy and score > best_score:
                best_key, best_score = key, score

        lower_search = team_name.lower().strip()
        for key, row in table.items():
            lower_original = row.team.lower()

            if lower_original in lower_search or lower_search in lower_original:
                score = similarity(lower_search, lower_original)
                if score > t.ranking_containment and (best_key is None or score > best_score):
                    best_key, best_score = key, max(score, t.ranking_containment_floor)

            # "University of Arizona" / "Arizona University" vs "Arizona"
            core = _CORE_NAME_RE.match(lower_original)
            if core and core.group(1) == lower_search:
                return RankingMatch(key, row.team, t.ranking_core_name)

        if best_key is None:
            return None
        return RankingMatch(best_key, table[best_key].team, best_score)

    @staticmethod
    def _variant_key(team_name: str, table: RankingTable) -> Optional[str]:
        words = team_name.split()
        # A bare leading word ("Arkansas" for "Arkansas Pine Bluff") is a different team
        lead = normalize_team_name(words[0]) if len(words) > 1 else None
        for variant in team_name_variants(team_name):
            key = normalize_team_name(variant)
            if key and key != lead and key in table:
                return key
        return None

    def get_team_stats(self, team_name: str) -> Optional[TeamRankingsStats]:
        """All six tables' values for the best-matching team, or ``None``."""
        tables = self.tables
        match = None
        for name in LOOKUP_ORDER:
            match = self.find_best_match(team_name, tables.table(name))
            if match:
                break

        if match is None:
            logger.info("TeamRankings: no match found for %r", team_name)
            return None

        key = match.key
        stats = TeamRankingsStats(
            team_name=team_name,
            matched_name=match.team,
            match_confidence=match.confidence,
            first_half=TeamHalfRankings.from_rows(
                tables.first_half_ppg.get(key),
                tables.first_half_allowed.get(key),
                tables.first_half_margin.get(key),
            ),
            second_half=TeamHalfRankings.from_rows(
                tables.second_half_ppg.get(key),
                tables.second_half_allowed.get(key),
                tables.second_half_margin.get(key),
            ),
        )
        logger.info(
            "TeamRankings: matched %r -> %r (%.0f%% confidence)", team_name, match.team, match.confidence * 100
        )
        return stats

    def fuzzy_candidates(
        self, team_name: str, threshold: Optional[float] = None, limit: Optional[int] = None
    ) -> List[RankingCandidate]:
        """Ranked candidates for UI disambiguation, searched over the 1H PPG table."""
        t = self.thresholds
        threshold = t.candidate_threshold if threshold is None else threshold
        limit = t.candidate_limit if limit is None else limit

        normalized_search = normalize_team_name(team_name)
        lower_search = team_name.lower().strip()
        candidates: List[RankingCandidate] = []
        seen = set()

        for key, row in self.tables.first_half_ppg.items():
            if row.team in seen:
                continue
            seen.add(row.team)

            lower_original = row.team.lower()
            score = max(similarity(normalized_search, key), similarity(lower_search, lower_original))
            if lower_search and (lower_original in lower_search or lower_search in lower_original):
                score = max(score, t.candidate_containment_boost)

            if score >= threshold:
                candidates.append(RankingCandidate(row.team, score))

        candidates.sort(key=lambda c: -c.score)
        return candidates[:limit]
