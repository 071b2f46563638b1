"""Tests for the scoreboard day walk that builds a team's game history."""

from datetime import date, datetime, timedelta, timezone

import requests

from cbb_predictor.data.ingestion.game_history import (
    HistoricalGameFetcher,
    is_candidate_game,
    normalize_game_date,
    parse_game_stats,
)
from cbb_predictor.data.ratings import RatingsTable
from cbb_predictor.data.scrapers.ncaa_scoreboard import (
    ContestTeam,
    GameDetail,
    PeriodScore,
    ScoreboardGame,
)


NOW = datetime(2025, 1, 20, 17, 0, tzinfo=timezone.utc)
TODAY = date(2025, 1, 20)


def _detail(game_id, home=("123", "missouri-st"), away=("456", "drake"), periods=(("33", "30"), ("38", "34")), day="2025-01-18"):
    return GameDetail(
        game_id=game_id,
        start_date=day,
        teams=[
            ContestTeam(team_id=home[0], is_home=True, name_full="Home Team", name_short="Home", seoname=home[1]),
            ContestTeam(team_id=away[0], is_home=False, name_full="Away Team", name_short="Away", seoname=away[1]),
        ],
        period_scores=[PeriodScore(str(i + 1), h, v) for i, (h, v) in enumerate(periods)],
    )


class _StubFeed:
    """Scoreboards keyed by date; ``failing_days`` and ``malformed_days`` raise."""

    def __init__(
        self,
        scoreboards=None,
        details=None,
        failing_days=None,
        fail_all=False,
        failing_details=(),
        malformed_days=(),
        malformed_details=(),
    ):
        self.scoreboards = scoreboards or {}
        self.details = details or {}
        self.failing_days = set(failing_days or ())
        self.fail_all = fail_all
        self.failing_details = set(failing_details)
        self.malformed_days = set(malformed_days)
        self.malformed_details = set(malformed_details)
        self.scoreboard_calls = []
        self.detail_calls = []

    def get_scoreboard(self, day):
        self.scoreboard_calls.append(day)
        if self.fail_all or day in self.failing_days:
            raise requests.ConnectionError(f"feed down for {day}")
        if day in self.malformed_days:
            raise ValueError("Scoreboard payload is list, expected a JSON object")
        return self.scoreboards.get(day, [])

    def get_game_detail(self, game_id):
        self.detail_calls.append(game_id)
        if game_id in self.failing_details:
            raise requests.Timeout("detail timeout")
        if game_id in self.malformed_details:
            raise ValueError("Game detail payload is str, expected a JSON object")
        return self.details.get(game_id)


def _sb(game_id, home="missouri-st", away="drake"):
    return ScoreboardGame(game_id=game_id, home_slug=home, away_slug=away)


def _fetcher(feed, ratings=None):
    return HistoricalGameFetcher(feed, ratings=ratings, clock=lambda: NOW)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_normalize_game_date_formats(self):
        assert normalize_game_date("01-18-2025", TODAY) == "2025-01-18"
        assert normalize_game_date("2025-01-18T19:00:00Z", TODAY) == "2025-01-18"
        assert normalize_game_date("01/18/2025", TODAY) == "2025-01-18"

    def test_normalize_game_date_fallback(self):
        assert normalize_game_date("", TODAY) == "2025-01-20"
        assert normalize_game_date("soon", TODAY) == "2025-01-20"

    def test_candidate_exact_and_prefix(self):
        assert is_candidate_game(_sb("1"), ["missouri-st"])
        assert is_candidate_game(_sb("1", home="missouri-st-bears"), ["missouri-state"])
        assert not is_candidate_game(_sb("1", home="kansas", away="drake-u"), ["missouri-st"])

    def test_candidate_prefix_is_whole_segment(self):
        assert not is_candidate_game(_sb("1", home="missourikc", away="utah"), ["missouri-st"])

    def test_today_uses_eastern_calendar(self):
        late_utc = datetime(2025, 1, 21, 3, 0, tzinfo=timezone.utc)
        fetcher = HistoricalGameFetcher(_StubFeed(), clock=lambda: late_utc)
        assert fetcher.today() == date(2025, 1, 20)


class TestParseGameStats:
    def test_home_team_perspective(self):
        ratings = RatingsTable({"teams": {"456": {"kenPom": 5.5}}})
        record = parse_game_stats(_detail("g1"), "missouri-st", ratings=ratings, fallback_date=TODAY)
        assert record.is_home is True
        assert (record.first_half.scored, record.first_half.allowed) == (33, 30)
        assert (record.second_half.scored, record.second_half.allowed) == (38, 34)
        assert record.opponent_id == "456"
        assert record.opponent == "Away"
        assert record.opponent_rating == 5.5
        assert record.date == "2025-01-18"

    def test_away_team_perspective_by_numeric_id(self):
        record = parse_game_stats(_detail("g1"), "456", fallback_date=TODAY)
        assert record.is_home is False
        assert (record.first_half.scored, record.first_half.allowed) == (30, 33)
        assert record.opponent_rating is None

    def test_team_not_in_game(self):
        assert parse_game_stats(_detail("g1"), "gonzaga", fallback_date=TODAY) is None

    def test_requires_two_halves(self):
        assert parse_game_stats(_detail("g1", periods=(("33", "30"),)), "missouri-st", fallback_date=TODAY) is None

    def test_non_numeric_scores(self):
        detail = _detail("g1", periods=(("33", "30"), ("", "")))
        assert parse_game_stats(detail, "missouri-st", fallback_date=TODAY) is None


# ---------------------------------------------------------------------------
# Day walk
# ---------------------------------------------------------------------------


class TestHistoricalGameFetcher:
    def test_collects_games_across_days(self):
        feed = _StubFeed(
            scoreboards={
                TODAY - timedelta(days=2): [_sb("g1"), _sb("other", home="kansas", away="baylor")],
                TODAY - timedelta(days=5): [_sb("g2", home="drake", away="missouri-st")],
            },
            details={
                "g1": _detail("g1"),
                "g2": _detail("g2", home=("456", "drake"), away=("123", "missouri-st"), day="2025-01-15"),
            },
        )
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 7)

        assert [g.game_id for g in report.games] == ["g1", "g2"]
        assert report.days_scanned == 7
        assert report.halted is False
        assert "other" not in feed.detail_calls

    def test_walks_newest_first(self):
        feed = _StubFeed()
        _fetcher(feed).fetch("missouri-st", "Missouri State", 3)
        assert feed.scoreboard_calls == [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

    def test_breaker_halts_after_three_consecutive_failures(self):
        feed = _StubFeed(fail_all=True)
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 30)

        assert len(feed.scoreboard_calls) == 3
        assert report.halted is True
        assert report.transport_failures == 3
        assert report.games == []

    def test_success_resets_failure_count(self):
        failing = {TODAY - timedelta(days=d) for d in (0, 1, 3, 4, 6, 7)}
        feed = _StubFeed(failing_days=failing)
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 10)

        assert len(feed.scoreboard_calls) == 10
        assert report.halted is False
        assert report.transport_failures == 6

    def test_malformed_days_count_toward_breaker(self):
        feed = _StubFeed(malformed_days={TODAY - timedelta(days=d) for d in range(30)})
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 30)

        assert len(feed.scoreboard_calls) == 3
        assert report.halted is True
        assert report.transport_failures == 3

    def test_malformed_day_keeps_games_already_found(self):
        feed = _StubFeed(
            scoreboards={
                TODAY: [_sb("g1")],
                TODAY - timedelta(days=2): [_sb("g2")],
            },
            details={"g1": _detail("g1"), "g2": _detail("g2", day="2025-01-16")},
            malformed_days={TODAY - timedelta(days=1)},
        )
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 3)

        assert [g.game_id for g in report.games] == ["g1", "g2"]
        assert report.transport_failures == 1
        assert report.halted is False

    def test_malformed_detail_skips_game(self):
        feed = _StubFeed(
            scoreboards={TODAY: [_sb("g1"), _sb("g2")]},
            details={"g2": _detail("g2")},
            malformed_details={"g1"},
        )
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 1)
        assert [g.game_id for g in report.games] == ["g2"]

        assert report.transport_failures == 3

    def test_detail_failure_skips_game_without_tripping_breaker(self):
        feed = _StubFeed(
            scoreboards={TODAY: [_sb("g1"), _sb("g2")]},
            details={"g2": _detail("g2")},
            failing_details={"g1"},
        )
        report = _fetcher(feed).fetch_with_report("missouri-st", "Missouri State", 1)
        assert [g.game_id for g in report.games] == ["g2"]
        assert report.transport_failures == 0

    def test_game_listed_twice_is_recorded_once(self):
        feed = _StubFeed(
            scoreboards={
                TODAY: [_sb("g1")],
                TODAY - timedelta(days=1): [_sb("g1")],
            },
            details={"g1": _detail("g1")},
        )
        games = _fetcher(feed).fetch("missouri-st", "Missouri State", 2)
        assert len(games) == 1
        assert feed.detail_calls == ["g1"]

    def test_candidate_without_team_is_dropped(self):
        feed = _StubFeed(
            scoreboards={TODAY: [_sb("g1", home="missouri", away="drake")]},
            details={"g1": _detail("g1", home=("999", "missouri"))},
        )
        assert _fetcher(feed).fetch("missouri-st", "Missouri State", 1) == []
