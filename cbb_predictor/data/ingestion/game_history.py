"""Team game history assembled by walking daily scoreboards backward.

For each day the scoreboard is filtered by slug heuristics, and each
candidate's game detail is fetched to confirm the team really played before
its linescores become a ``GameStatRecord``.

Consecutive scoreboard failures (transport errors, or payloads that are not
JSON objects) trip a breaker: after ``max_consecutive_failures`` failed days
in a row the walk stops, on the assumption that the feed is down. Days are
visited strictly newest-first so "consecutive" means consecutive calendar days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Set

import pytz
import requests

from ...models.team_stats import GameStatRecord, HalfScore
from ..normalize import schedule_slug_variants, to_slug
from ..ratings import RatingsTable
from ..scrapers.ncaa_scoreboard import GameDetail, ScoreboardGame

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d")


@dataclass
class HistoryFetchReport:
    """Outcome of one day walk."""

    games: List[GameStatRecord] = field(default_factory=list)
    days_requested: int = 0
    days_scanned: int = 0
    transport_failures: int = 0
    halted: bool = False  # breaker tripped before the window was exhausted


def normalize_game_date(raw: str, fallback: date) -> str:
    """ISO date for a feed date string, or ``fallback`` when unparseable."""
    text = (raw or "").strip()
    if text:
        head = text.split("T")[0].split(" ")[0]
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(head, fmt).date().isoformat()
            except ValueError:
                continue
    return fallback.isoformat()


def is_candidate_game(game: ScoreboardGame, variants: Sequence[str]) -> bool:
    """Cheap scoreboard-level filter before any detail request.

    A slug matches a variant exactly, or shares the variant's first
    hyphen-separated word as a whole leading segment.
    """
    slugs = (game.home_slug, game.away_slug)
    for variant in variants:
        if not variant:
            continue
        if variant in slugs:
            return True
        first_word = variant.split("-")[0]
        for slug in slugs:
            if slug == first_word or slug.startswith(first_word + "-"):
                return True
    return False


def parse_game_stats(
    detail: GameDetail,
    team_id: str,
    team_slug: Optional[str] = None,
    ratings: Optional[RatingsTable] = None,
    fallback_date: Optional[date] = None,
) -> Optional[GameStatRecord]:
    """Build the team's record for a game; ``None`` if the team is absent or halves are missing."""
    if len(detail.period_scores) < 2:
        return None

    team = next(
        (
            t
            for t in detail.teams
            if t.team_id == team_id or t.seoname == team_id or (team_slug and t.seoname == team_slug)
        ),
        None,
    )
    if team is None:
        return None
    opponent = next((t for t in detail.teams if t is not team), None)
    if opponent is None:
        return None

    first, second = detail.period_scores[0], detail.period_scores[1]
    try:
        if team.is_home:
            first_half = HalfScore(int(first.home), int(first.visit))
            second_half = HalfScore(int(second.home), int(second.visit))
        else:
            first_half = HalfScore(int(first.visit), int(first.home))
            second_half = HalfScore(int(second.visit), int(second.home))
    except ValueError:
        logger.debug("Game %s has non-numeric linescores; skipping", detail.game_id)
        return None

    fallback = fallback_date or datetime.now(timezone.utc).date()
    return GameStatRecord(
        game_id=detail.game_id,
        date=normalize_game_date(detail.start_date, fallback),
        opponent=opponent.name_short or opponent.name_full,
        opponent_id=opponent.team_id,
        is_home=team.is_home,
        opponent_rating=ratings.get_primary_rating(opponent.team_id) if ratings else None,
        first_half=first_half,
        second_half=second_half,
    )


class HistoricalGameFetcher:
    """Collects a team's recent games from a scoreboard feed.

    ``feed`` needs ``get_scoreboard(day)`` and ``get_game_detail(game_id)``,
    e.g. :class:`~cbb_predictor.data.scrapers.NCAAScoreboardClient`.
    """

    def __init__(
        self,
        feed,
        ratings: Optional[RatingsTable] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_consecutive_failures: int = 3,
        schedule_timezone: str = "US/Eastern",
    ):
        self.feed = feed
        self.ratings = ratings
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_consecutive_failures = max_consecutive_failures
        self.tz = pytz.timezone(schedule_timezone)

    def today(self) -> date:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz).date()

    def fetch(self, team_id: str, team_name: str, days_back: int) -> List[GameStatRecord]:
        return self.fetch_with_report(team_id, team_name, days_back).games

    def fetch_with_report(self, team_id: str, team_name: str, days_back: int) -> HistoryFetchReport:
        report = HistoryFetchReport(days_requested=days_back)
        variants = schedule_slug_variants(team_id, team_name)
        team_slug = to_slug(team_name)
        seen: Set[str] = set()
        consecutive_failures = 0
        today = self.today()

        for offset in range(days_back):
            if consecutive_failures >= self.max_consecutive_failures:
                report.halted = True
                logger.warning(
                    "Stopping search for %s after %d consecutive failures", team_name, consecutive_failures
                )
                break

            day = today - timedelta(days=offset)
            report.days_scanned += 1
            try:
                scoreboard = self.feed.get_scoreboard(day)
            except (requests.RequestException, ValueError) as exc:
                consecutive_failures += 1
                report.transport_failures += 1
                logger.warning(
                    "Failed to fetch scoreboard for %s (failure %d/%d): %s",
                    day.isoformat(),
                    consecutive_failures,
                    self.max_consecutive_failures,
                    exc,
                )
                continue
            consecutive_failures = 0

            for game in scoreboard:
                if game.game_id in seen or not is_candidate_game(game, variants):
                    continue
                record = self._confirm_and_parse(game.game_id, team_id, team_slug, day)
                if record is not None:
                    seen.add(game.game_id)
                    report.games.append(record)

        if consecutive_failures >= self.max_consecutive_failures:
            report.halted = True

        logger.info(
            "Found %d games for %s (%s) over %d/%d days",
            len(report.games),
            team_name,
            team_id,
            report.days_scanned,
            days_back,
        )
        return report

    def _confirm_and_parse(
        self, game_id: str, team_id: str, team_slug: str, day: date
    ) -> Optional[GameStatRecord]:
        try:
            detail = self.feed.get_game_detail(game_id)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Failed to fetch game %s: %s", game_id, exc)
            return None
        if detail is None or not detail.teams:
            return None
        return parse_game_stats(detail, team_id, team_slug, self.ratings, fallback_date=day)
