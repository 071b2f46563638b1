"""
Team identity resolution against the per-team stats cache.

The scoreboard feed, the ratings table and user aliases each identify a
school their own way:

  Scoreboard slug:  "missouri-st"
  Full name:        "Missouri State Bears"
  User alias:       "mo-state" -> "missouri-st"

``TeamNameResolver`` turns a (raw id, raw name) pair from any of these into
the id a cache record is stored under. It runs an ordered list of strategy
functions and stops at the first hit:

1. Exact id: a cache record exists for the raw id
2. Alias: the alias store maps the raw id to a cached id
3. Name variants: slug / core-name / "X-st" forms of the name (and their aliases)
4. Fuzzy: ``is_likely_match`` against every cached team name

When nothing hits, ``suggestions`` ranks cached teams by name similarity so
a user can pick one and store it as an alias.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..config import MatchingThresholds
from ..models.team_stats import CachedTeamSummary
from .alias_store import AliasStore
from .normalize import is_likely_match, normalize_team_name, similarity, team_name_variants

logger = logging.getLogger(__name__)

EXACT_ID_CONFIDENCE = 1.0
ALIAS_CONFIDENCE = 0.98
VARIANT_CONFIDENCE = 0.95
VARIANT_ALIAS_CONFIDENCE = 0.93
FUZZY_CONTAINMENT_CONFIDENCE = 0.7


@dataclass(frozen=True)
class Match:
    """Result of a successful resolution. Never persisted."""

    resolved_id: str
    matched_name: str
    confidence: float  # 0.0 to 1.0
    method: str  # "exact_id", "alias", "variant", "variant_alias", "fuzzy"


@dataclass(frozen=True)
class TeamSuggestion:
    team_id: str
    team_name: str
    similarity: float
    games_count: int


@dataclass
class MatchSources:
    """What the strategies may consult: a stats store and the alias table.

    ``store`` needs ``load(team_id)`` and ``list_teams()``.
    """

    store: object
    aliases: Optional[AliasStore]
    thresholds: MatchingThresholds


Strategy = Callable[[str, str, MatchSources], Optional[Match]]


def _cached_match(team_id: str, sources: MatchSources, confidence: float, method: str) -> Optional[Match]:
    cache = sources.store.load(team_id)
    if cache is None:
        return None
    return Match(team_id, cache.team_name, confidence, method)


def _alias_for(name: str, sources: MatchSources) -> Optional[str]:
    if sources.aliases is None:
        return None
    return sources.aliases.get(name)


def match_exact_id(team_id: str, team_name: str, sources: MatchSources) -> Optional[Match]:
    if not team_id:
        return None
    return _cached_match(team_id, sources, EXACT_ID_CONFIDENCE, "exact_id")


def match_alias(team_id: str, team_name: str, sources: MatchSources) -> Optional[Match]:
    if not team_id:
        return None
    resolved = _alias_for(team_id, sources)
    if not resolved or resolved == team_id:
        return None
    match = _cached_match(resolved, sources, ALIAS_CONFIDENCE, "alias")
    if match:
        logger.info("Found team %s via alias -> %s", team_id, resolved)
    return match


def match_name_variants(team_id: str, team_name: str, sources: MatchSources) -> Optional[Match]:
    for variant in team_name_variants(team_name):
        match = _cached_match(variant, sources, VARIANT_CONFIDENCE, "variant")
        if match:
            logger.info("Found team %s via name variant -> %s", team_name, variant)
            return match

        resolved = _alias_for(variant, sources)
        if resolved and resolved != variant:
            match = _cached_match(resolved, sources, VARIANT_ALIAS_CONFIDENCE, "variant_alias")
            if match:
                logger.info("Found team %s via variant alias (%s) -> %s", team_name, variant, resolved)
                return match
    return None


def fuzzy_confidence(name: str, candidate: str) -> float:
    norm_a = normalize_team_name(name)
    norm_b = normalize_team_name(candidate)
    if name.lower() == candidate.lower() or norm_a == norm_b:
        return VARIANT_CONFIDENCE
    return max(similarity(norm_a, norm_b), FUZZY_CONTAINMENT_CONFIDENCE)


def match_fuzzy_name(team_id: str, team_name: str, sources: MatchSources) -> Optional[Match]:
    if not team_name:
        return None
    threshold = sources.thresholds.likely_match
    # Populated records first, so an empty placeholder never shadows real data
    candidates = sorted(sources.store.list_teams(), key=lambda t: -t.games_count)
    for candidate in candidates:
        if not is_likely_match(team_name, candidate.team_name, threshold):
            continue
        match = _cached_match(
            candidate.team_id, sources, fuzzy_confidence(team_name, candidate.team_name), "fuzzy"
        )
        if match:
            logger.info(
                "Found team %s via fuzzy match -> %s (%s)", team_name, candidate.team_name, candidate.team_id
            )
            return match
    return None


DEFAULT_STRATEGIES: Sequence[Strategy] = (
    match_exact_id,
    match_alias,
    match_name_variants,
    match_fuzzy_name,
)


def first_match(
    strategies: Sequence[Strategy], team_id: str, team_name: str, sources: MatchSources
) -> Optional[Match]:
    """Run strategies in order; the first non-``None`` result wins."""
    for strategy in strategies:
        match = strategy(team_id, team_name, sources)
        if match is not None:
            return match
    return None


def find_similar_teams(
    search_name: str,
    available: Sequence[CachedTeamSummary],
    limit: int = 5,
    floor: float = 0.4,
) -> List[TeamSuggestion]:
    """Cached teams whose name similarity exceeds ``floor``.

    Sorted by similarity, then by number of cached games, both descending.
    """
    scored = [
        TeamSuggestion(t.team_id, t.team_name, similarity(search_name, t.team_name), t.games_count)
        for t in available
    ]
    scored = [s for s in scored if s.similarity > floor]
    scored.sort(key=lambda s: (-s.similarity, -s.games_count))
    return scored[:limit]


class TeamNameResolver:
    """
    Resolves (raw id, raw name) pairs to cached team ids.

    Stateless apart from its collaborators; every call reads the current
    cache directory and alias file.
    """

    def __init__(
        self,
        store,
        aliases: Optional[AliasStore] = None,
        thresholds: Optional[MatchingThresholds] = None,
        strategies: Optional[Sequence[Strategy]] = None,
    ):
        self.sources = MatchSources(store=store, aliases=aliases, thresholds=thresholds or MatchingThresholds())
        self.strategies = tuple(strategies) if strategies is not None else tuple(DEFAULT_STRATEGIES)

    def resolve(self, team_id: str, team_name: str) -> Optional[Match]:
        """
        Resolve a team to the id its cache record is stored under.

        Args:
            team_id: Raw id from the caller (scoreboard slug or numeric id)
            team_name: Display name from the caller

        Returns:
            Match, or None when no strategy hits (see ``suggestions``)
        """
        return first_match(self.strategies, (team_id or "").strip(), (team_name or "").strip(), self.sources)

    def suggestions(self, team_name: str, limit: Optional[int] = None) -> List[TeamSuggestion]:
        thresholds = self.sources.thresholds
        return find_similar_teams(
            team_name,
            self.sources.store.list_teams(),
            limit=limit if limit is not None else thresholds.suggestion_limit,
            floor=thresholds.suggestion_floor,
        )
