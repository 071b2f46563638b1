"""Tests for the stats cache manager: staleness policy, refresh paths and fallbacks."""

from datetime import datetime, timedelta, timezone

import pytest
import requests

from cbb_predictor.config import StatsCacheConfig
from cbb_predictor.data.alias_store import AliasStore
from cbb_predictor.data.ingestion.game_history import HistoricalGameFetcher, HistoryFetchReport
from cbb_predictor.data.scrapers.ncaa_scoreboard import NCAAScoreboardClient
from cbb_predictor.data.team_name_resolver import TeamNameResolver
from cbb_predictor.models.team_stats import GameStatRecord, HalfScore
from cbb_predictor.stats.aggregation import build_stats_cache
from cbb_predictor.stats.cache_manager import CacheState, StatsCacheManager
from cbb_predictor.stats.cache_store import TeamStatsStore


T0 = datetime(2025, 1, 20, 12, 0, tzinfo=timezone.utc)


def _game(game_id, day, scored=30):
    return GameStatRecord(
        game_id=game_id,
        date=f"2025-01-{day:02d}",
        opponent_id="opp",
        is_home=True,
        first_half=HalfScore(scored, 28),
        second_half=HalfScore(scored + 5, 30),
    )


def _report(*games, halted=False):
    return HistoryFetchReport(games=list(games), days_requested=7, days_scanned=7, halted=halted)


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class _StubFetcher:
    """Returns scripted reports (or raises scripted exceptions) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def fetch_with_report(self, team_id, team_name, days_back):
        self.calls.append((team_id, team_name, days_back))
        outcome = self.outcomes.pop(0) if self.outcomes else HistoryFetchReport()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _DeadFeed:
    def __init__(self):
        self.scoreboard_calls = 0

    def get_scoreboard(self, day):
        self.scoreboard_calls += 1
        raise requests.ConnectionError("feed down")

    def get_game_detail(self, game_id):
        raise AssertionError("no detail request expected")


@pytest.fixture
def clock():
    return _Clock(T0)


@pytest.fixture
def store(tmp_path):
    return TeamStatsStore(str(tmp_path / "teams"))


def _manager(store, fetcher, clock, tmp_path, **config):
    resolver = TeamNameResolver(store, AliasStore(str(tmp_path / "team-aliases.json")))
    return StatsCacheManager(store, resolver, fetcher, config=StatsCacheConfig(**config), clock=clock)


def _seed(store, team_id, team_name, games, last_updated):
    cache = build_stats_cache(team_id, team_name, games, last_updated)
    store.save(cache)
    return cache


# ---------------------------------------------------------------------------
# Staleness policy
# ---------------------------------------------------------------------------


class TestStaleness:
    def test_just_past_ttl_is_stale(self, store, clock, tmp_path):
        manager = _manager(store, _StubFetcher(), clock, tmp_path)
        cache = build_stats_cache("duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=6, seconds=1))
        assert manager.is_stale(cache)
        assert manager.classify(cache) == CacheState.STALE

    def test_exactly_ttl_is_stale(self, store, clock, tmp_path):
        manager = _manager(store, _StubFetcher(), clock, tmp_path)
        cache = build_stats_cache("duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=6))
        assert manager.classify(cache) == CacheState.STALE

    def test_within_ttl_is_fresh(self, store, clock, tmp_path):
        manager = _manager(store, _StubFetcher(), clock, tmp_path)
        cache = build_stats_cache("duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=5))
        assert manager.classify(cache) == CacheState.FRESH

    def test_grace_period_overrides_ttl(self, store, clock, tmp_path):
        manager = _manager(store, _StubFetcher(), clock, tmp_path, cache_ttl=timedelta(minutes=2))
        cache = build_stats_cache("duke", "Duke", [_game("g1", 1)], T0 - timedelta(minutes=5))
        assert manager.is_stale(cache)
        assert manager.is_within_grace(cache)
        assert manager.classify(cache) == CacheState.FRESH

    def test_empty_and_missing(self, store, clock, tmp_path):
        manager = _manager(store, _StubFetcher(), clock, tmp_path)
        assert manager.classify(None) == CacheState.NO_CACHE
        assert manager.classify(build_stats_cache("duke", "Duke", [], T0)) == CacheState.EMPTY


# ---------------------------------------------------------------------------
# get_team_stats transitions
# ---------------------------------------------------------------------------


class TestGetTeamStats:
    def test_fresh_cache_served_without_fetch(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=1))
        fetcher = _StubFetcher()
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")

        assert result.matched
        assert result.state == CacheState.FRESH
        assert not result.stale
        assert not result.refreshed
        assert fetcher.calls == []

    def test_bootstrap_fetches_full_window(self, store, clock, tmp_path):
        fetcher = _StubFetcher(_report(_game("g1", 1), _game("g2", 2)))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")

        assert fetcher.calls == [("duke", "Duke", 30)]
        assert result.matched
        assert result.refreshed
        assert result.state == CacheState.FRESH
        assert result.cache.games_count == 2
        assert store.load("duke").last_updated == T0

    def test_bootstrap_round_trip(self, store, clock, tmp_path):
        games = [_game(f"g{d}", d, scored=10 if d <= 2 else 40) for d in range(1, 8)]
        _manager(store, _StubFetcher(_report(*games)), clock, tmp_path).get_team_stats("duke", "Duke")

        reloaded = store.load("duke")
        assert {g.game_id for g in reloaded.games} == {g.game_id for g in games}
        assert [g.game_id for g in reloaded.games[:5]] == ["g7", "g6", "g5", "g4", "g3"]
        assert reloaded.last5_averages.first_half.scored == 40.0
        assert reloaded.last5_averages.first_half.games_played == 5
        assert reloaded.season_averages.first_half.games_played == 7

    def test_bootstrap_breaker_gives_empty_result(self, store, clock, tmp_path):
        feed = _DeadFeed()
        fetcher = HistoricalGameFetcher(feed, clock=clock)
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("missouri-st", "Missouri State")

        assert feed.scoreboard_calls == 3
        assert not result.matched
        assert result.state == CacheState.EMPTY
        assert result.cache.games == []
        assert store.load("missouri-st").games == []

    def test_bootstrap_failure_includes_suggestions(self, store, clock, tmp_path):
        _seed(store, "missouri-st", "Missouri St.", [_game("g1", 1)], T0)
        fetcher = _StubFetcher(RuntimeError("boom"))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("9999", "Missouri Southern")

        assert not result.matched
        assert [s.team_id for s in result.suggestions] == ["missouri-st"]

    def test_empty_record_retried_on_every_call(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [], T0)
        fetcher = _StubFetcher(_report(), _report())
        manager = _manager(store, fetcher, clock, tmp_path)

        first = manager.get_team_stats("duke", "Duke")
        second = manager.get_team_stats("duke", "Duke")

        assert first.state == CacheState.EMPTY and second.state == CacheState.EMPTY
        assert first.matched
        assert [days for _, _, days in fetcher.calls] == [30, 30]

    def test_empty_record_filled(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [], T0)
        fetcher = _StubFetcher(_report(_game("g1", 1)))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")

        assert result.state == CacheState.FRESH
        assert result.refreshed
        assert store.load("duke").games_count == 1

    def test_stale_refresh_is_incremental(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1), _game("g2", 2)], T0 - timedelta(hours=7))
        fetcher = _StubFetcher(_report(_game("g3", 3)))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")

        assert fetcher.calls == [("duke", "Duke", 7)]
        assert result.state == CacheState.FRESH
        assert not result.stale
        assert [g.game_id for g in result.cache.games] == ["g3", "g2", "g1"]
        assert store.load("duke").last_updated == T0

    def test_overlapping_refreshes_never_duplicate(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1), _game("g2", 2), _game("g3", 3)], T0 - timedelta(hours=7))
        fetcher = _StubFetcher(
            _report(_game("g3", 3, scored=99), _game("g4", 4)),
            _report(_game("g4", 4), _game("g5", 5)),
        )
        manager = _manager(store, fetcher, clock, tmp_path)

        manager.get_team_stats("duke", "Duke")
        clock.now += timedelta(hours=7)
        manager.get_team_stats("duke", "Duke")

        cache = store.load("duke")
        assert sorted(g.game_id for g in cache.games) == ["g1", "g2", "g3", "g4", "g5"]
        assert next(g for g in cache.games if g.game_id == "g3").first_half.scored == 30

    def test_stale_served_when_refresh_raises(self, store, clock, tmp_path):
        original = _seed(store, "duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=7))
        fetcher = _StubFetcher(requests.Timeout("slow"))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")

        assert result.matched
        assert result.stale
        assert result.state == CacheState.STALE
        assert result.cache.games_count == 1
        assert store.load("duke").last_updated == original.last_updated

    def test_stale_served_when_breaker_trips(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=7))
        fetcher = _StubFetcher(_report(halted=True))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("duke", "Duke")
        assert result.stale
        assert result.state == CacheState.STALE

    def test_refresh_with_no_new_games_bumps_timestamp(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=7))
        result = _manager(store, _StubFetcher(_report()), clock, tmp_path).get_team_stats("duke", "Duke")
        assert result.state == CacheState.FRESH
        assert store.load("duke").last_updated == T0

    def test_last_updated_never_moves_backwards(self, store, clock, tmp_path):
        future = T0 + timedelta(hours=1)
        _seed(store, "duke", "Duke", [], future)
        _manager(store, _StubFetcher(_report(_game("g1", 1))), clock, tmp_path).get_team_stats("duke", "Duke")
        assert store.load("duke").last_updated == future

    def test_resolved_through_variant(self, store, clock, tmp_path):
        _seed(store, "missouri-st", "Missouri St.", [_game("g1", 1)], T0)
        fetcher = _StubFetcher()
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("2724", "Missouri State")
        assert result.match.resolved_id == "missouri-st"
        assert result.match.method == "variant"
        assert fetcher.calls == []

    def test_save_failure_is_not_fatal(self, store, clock, tmp_path, monkeypatch):
        def broken_save(cache):
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", broken_save)
        result = _manager(store, _StubFetcher(_report(_game("g1", 1))), clock, tmp_path).get_team_stats("duke", "Duke")
        assert result.matched
        assert result.cache.games_count == 1

    @pytest.mark.parametrize("team_id,team_name", [("", "Duke"), ("duke", ""), ("  ", "Duke"), ("duke", "   ")])
    def test_blank_input_rejected(self, store, clock, tmp_path, team_id, team_name):
        manager = _manager(store, _StubFetcher(), clock, tmp_path)
        with pytest.raises(ValueError):
            manager.get_team_stats(team_id, team_name)


# ---------------------------------------------------------------------------
# Read-only helpers and wiring
# ---------------------------------------------------------------------------


class TestStatusAndMatchups:
    def test_check_status_never_fetches(self, store, clock, tmp_path):
        _seed(store, "duke", "Duke", [_game("g1", 1)], T0 - timedelta(hours=7))
        fetcher = _StubFetcher()
        manager = _manager(store, fetcher, clock, tmp_path)

        result = manager.check_status("duke", "Duke")
        assert result.state == CacheState.STALE
        assert result.stale

        missing = manager.check_status("9999", "Dike")
        assert missing.cache is None
        assert missing.state == CacheState.NO_CACHE
        assert [s.team_id for s in missing.suggestions] == ["duke"]
        assert fetcher.calls == []

    @pytest.mark.parametrize("concurrent", [True, False])
    def test_matchup(self, store, clock, tmp_path, concurrent):
        _seed(store, "duke", "Duke", [_game("g1", 1)], T0)
        _seed(store, "arizona", "Arizona", [_game("g2", 2)], T0)
        manager = _manager(store, _StubFetcher(), clock, tmp_path)

        home, away = manager.get_matchup_stats("duke", "Duke", "arizona", "Arizona", concurrent=concurrent)
        assert home.cache.team_id == "duke"
        assert away.cache.team_id == "arizona"

    def test_from_config_wires_file_backed_collaborators(self, tmp_path, clock):
        config = StatsCacheConfig(data_dir=str(tmp_path))
        feed = _DeadFeed()
        manager = StatsCacheManager.from_config(config, feed=feed, clock=clock)

        AliasStore(config.aliases_file).set("blue devils", "duke")
        _seed(manager.store, "duke", "Duke", [_game("g1", 1)], T0)

        assert manager.fetcher.feed is feed
        assert manager.store.cache_dir == tmp_path / "teams"
        assert manager.resolve("blue-devils", "Blue Devils").method == "alias"


# ---------------------------------------------------------------------------
# Unreadable records in the cache directory
# ---------------------------------------------------------------------------


def _write_bad_records(store):
    store.cache_dir.mkdir(parents=True, exist_ok=True)
    (store.cache_dir / "binary.json").write_bytes(b'{"team_id":"binary","team_name":"\xff\xfe"}')
    (store.cache_dir / "nulls.json").write_text('{"team_id": "nulls", "games": null}')
    (store.cache_dir / "text.json").write_text('{"team_id": "text", "games": "g1,g2"}')


class TestBadRecords:
    def test_list_teams_skips_bad_records(self, store):
        _seed(store, "missouri-st", "Missouri St.", [_game("g1", 1)], T0)
        _write_bad_records(store)

        teams = store.list_teams()
        assert [(t.team_id, t.games_count) for t in teams] == [("missouri-st", 1)]

    def test_bad_records_do_not_break_other_teams(self, store, clock, tmp_path):
        _write_bad_records(store)
        fetcher = _StubFetcher(_report(_game("g1", 20)))
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("drake", "Drake")

        assert result.matched
        assert result.state == CacheState.FRESH
        assert result.cache.games_count == 1
        assert store.load("nulls") is None

    def test_load_rejects_non_object_games(self, store):
        store.cache_dir.mkdir(parents=True, exist_ok=True)
        store.path_for("odd").write_text(
            '{"team_id": "odd", "last_updated": "2025-01-20T12:00:00+00:00", "games": ["g1"]}'
        )
        assert store.load("odd") is None


# ---------------------------------------------------------------------------
# Malformed feed payloads through the real client
# ---------------------------------------------------------------------------


class _JsonResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class _PayloadSession:
    """Serves payloads by URL suffix; unknown scoreboards are empty days."""

    def __init__(self, payloads):
        self.payloads = payloads
        self.headers = {}

    def get(self, url, timeout=None):
        for suffix, payload in self.payloads.items():
            if url.endswith(suffix):
                return _JsonResponse(payload)
        return _JsonResponse({"games": []})


class TestMalformedFeed:
    def test_malformed_day_does_not_discard_found_games(self, store, clock, tmp_path):
        session = _PayloadSession(
            {
                "/2025/01/20/all-conf": {
                    "games": [
                        {
                            "game": {
                                "gameID": "501",
                                "home": {"names": {"seo": "drake", "short": "Drake"}},
                                "away": {"names": {"seo": "bradley", "short": "Bradley"}},
                            }
                        }
                    ]
                },
                "/2025/01/19/all-conf": ["unexpected", "list"],
                "/game/501": {
                    "contests": [
                        {
                            "id": 501,
                            "startDate": "2025-01-20",
                            "teams": [
                                {"teamId": "111", "isHome": True, "nameShort": "Drake", "seoname": "drake"},
                                {"teamId": "222", "isHome": False, "nameShort": "Bradley", "seoname": "bradley"},
                            ],
                            "linescores": [
                                {"period": "1", "home": "34", "visit": "30"},
                                {"period": "2", "home": "40", "visit": "35"},
                            ],
                        }
                    ]
                },
            }
        )
        feed = NCAAScoreboardClient(base_url="https://feed.test", session=session)
        fetcher = HistoricalGameFetcher(feed, clock=clock)
        result = _manager(store, fetcher, clock, tmp_path).get_team_stats("drake", "Drake")

        assert result.matched
        assert result.state == CacheState.FRESH
        assert [g.game_id for g in result.cache.games] == ["501"]
        assert result.cache.games[0].first_half == HalfScore(34, 30)
        assert store.load("drake").games_count == 1
