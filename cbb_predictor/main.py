"""Command line interface for the team stats cache."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime

import requests

from .config import StatsCacheConfig
from .data.alias_store import AliasStore
from .data.scrapers.ncaa_scoreboard import NCAAScoreboardClient
from .data.team_rankings import RankingRowStore
from .pipeline.preload import preload_teams
from .stats.cache_manager import StatsCacheManager
from .stats.formatting import format_team_cache_block, format_team_rankings_block


def load_config(args) -> StatsCacheConfig:
    overrides = {}
    if getattr(args, "data_dir", None):
        overrides["data_dir"] = args.data_dir
    return StatsCacheConfig.from_env(**overrides)


def build_feed(config: StatsCacheConfig) -> NCAAScoreboardClient:
    return NCAAScoreboardClient(
        base_url=config.api_base,
        scoreboard_timeout=config.scoreboard_timeout_seconds,
        detail_timeout=config.detail_timeout_seconds,
    )


def _print_suggestions(suggestions):
    if not suggestions:
        print("No similar teams in the cache.")
        return
    print("Did you mean:")
    for s in suggestions:
        print(f"  {s.team_name} ({s.team_id}) - {s.similarity:.0%} similar, {s.games_count} games")


def team_stats(args):
    """Resolve a team and print its (possibly refreshed) stats."""
    config = load_config(args)
    manager = StatsCacheManager.from_config(config, feed=build_feed(config))
    result = manager.get_team_stats(args.team_id, args.team_name)

    if args.json:
        payload = {
            "matched": result.matched,
            "stale": result.stale,
            "state": result.state.value,
            "cache": result.cache.to_dict() if result.cache else None,
            "suggestions": [asdict(s) for s in result.suggestions],
        }
        print(json.dumps(payload, indent=2))
        return 0 if result.matched else 1

    if not result.matched:
        print(f"Could not find stats for {args.team_name} ({args.team_id}).")
        _print_suggestions(result.suggestions)
        return 1

    if result.match:
        print(f"Matched via {result.match.method} ({result.match.confidence:.0%}): {result.match.resolved_id}")
    if result.stale:
        print("WARNING: refresh failed, showing stale data")
    if result.cache.games_count == 0:
        print(f"{result.cache.team_name}: no games on file yet")
        return 0
    print(format_team_cache_block(result.cache, args.context))
    return 0


def status(args):
    """Cache-only lookup; never fetches."""
    config = load_config(args)
    manager = StatsCacheManager.from_config(config, feed=build_feed(config))
    result = manager.check_status(args.team_id, args.team_name)

    if result.cache is None:
        print(f"{args.team_name} ({args.team_id}): not cached")
        _print_suggestions(result.suggestions)
        return 1

    cache = result.cache
    age = manager.cache_age(cache)
    print(f"{cache.team_name} ({cache.team_id})")
    print(f"  State:        {result.state.value}")
    print(f"  Games:        {cache.games_count}")
    print(f"  Last updated: {cache.last_updated.isoformat()} ({age.total_seconds() / 3600:.1f}h ago)")
    return 0


def suggest(args):
    config = load_config(args)
    manager = StatsCacheManager.from_config(config, feed=build_feed(config))
    _print_suggestions(manager.suggestions(args.team_name, limit=args.limit))
    return 0


def alias(args):
    """List, add or remove user alias corrections."""
    config = load_config(args)
    store = AliasStore(config.aliases_file)

    if args.alias_command == "add":
        key = store.set(args.raw_name, args.team_id)
        print(f"Saved alias {key} -> {args.team_id}")
        return 0
    if args.alias_command == "remove":
        if store.remove(args.raw_name):
            print(f"Removed alias {args.raw_name}")
            return 0
        print(f"No alias for {args.raw_name}")
        return 1

    entries = store.entries()
    if not entries:
        print("No aliases defined.")
        return 0
    print(f"{len(entries)} aliases:")
    for raw, mapped in entries:
        print(f"  {raw} -> {mapped}")
    return 0


def rankings(args):
    """Print TeamRankings half splits or fuzzy candidates for a name."""
    config = load_config(args)
    store = RankingRowStore(
        config.rankings_dir,
        reload_interval=config.rankings_reload_interval,
        thresholds=config.thresholds,
    )
    if not store.is_loaded():
        print(f"No TeamRankings data found in {config.rankings_dir}")
        return 1

    if args.candidates:
        candidates = store.fuzzy_candidates(args.team_name)
        if not candidates:
            print(f"No candidates for {args.team_name}")
            return 1
        for c in candidates:
            print(f"  {c.name} ({c.score:.0%})")
        return 0

    stats = store.get_team_stats(args.team_name)
    if stats is None:
        print(f"No TeamRankings match for {args.team_name}")
        return 1
    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
    else:
        print(f"Matched {stats.matched_name} ({stats.match_confidence:.0%} confidence)")
        print(format_team_rankings_block(stats, args.context))
    return 0


def preload(args):
    """Warm the cache for every team on a day's scoreboard."""
    config = load_config(args)
    feed = build_feed(config)
    manager = StatsCacheManager.from_config(config, feed=feed)
    day = datetime.strptime(args.date, "%Y-%m-%d").date() if args.date else None

    def report(index, total, team_id, outcome, message):
        print(f"[{index}/{total}] {team_id}: {message}")

    print("Starting team stats pre-load...")
    try:
        summary = preload_teams(manager, feed, day=day, progress=report)
    except (requests.RequestException, ValueError) as e:
        print(f"Error fetching scoreboard: {e}")
        return 1

    print("-" * 80)
    print("Summary:")
    print(f"   Day:         {summary.day}")
    print(f"   Total teams: {summary.total}")
    print(f"   Used cache:  {summary.cached}")
    print(f"   Fetched new: {summary.fetched}")
    print(f"   Failed:      {summary.failed}")
    print(f"   Time:        {summary.elapsed_seconds:.2f}s")
    if summary.failed:
        print(f"Warning: {summary.failed} team(s) have no game data. Predictions may be limited.")
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="CBB Predictor - team identity resolution and half-score stats cache"
    )
    parser.add_argument("--data-dir", default=None, help="Data directory (default: $CBB_DATA_DIR or ./data)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Team stats command
    stats_parser = subparsers.add_parser("team-stats", help="Get cached stats for a team, refreshing if stale")
    stats_parser.add_argument("team_id", help="Team id or scoreboard slug")
    stats_parser.add_argument("team_name", help="Team display name")
    stats_parser.add_argument("--context", choices=["home", "away", "neutral"], default="home")
    stats_parser.add_argument("--json", action="store_true", help="Print the raw cache record as JSON")

    status_parser = subparsers.add_parser("status", help="Show cache state without fetching")
    status_parser.add_argument("team_id")
    status_parser.add_argument("team_name")

    suggest_parser = subparsers.add_parser("suggest", help="Suggest cached teams similar to a name")
    suggest_parser.add_argument("team_name")
    suggest_parser.add_argument("--limit", type=int, default=None)

    # Alias commands
    alias_parser = subparsers.add_parser("alias", help="Manage team alias corrections")
    alias_sub = alias_parser.add_subparsers(dest="alias_command")
    alias_sub.add_parser("list", help="List aliases")
    alias_add = alias_sub.add_parser("add", help="Map a raw name or id to a cached team id")
    alias_add.add_argument("raw_name")
    alias_add.add_argument("team_id")
    alias_remove = alias_sub.add_parser("remove", help="Remove an alias")
    alias_remove.add_argument("raw_name")

    rankings_parser = subparsers.add_parser("rankings", help="Look up TeamRankings half splits")
    rankings_parser.add_argument("team_name")
    rankings_parser.add_argument("--context", choices=["home", "away", "neutral"], default="home")
    rankings_parser.add_argument("--candidates", action="store_true", help="List fuzzy candidates instead")
    rankings_parser.add_argument("--json", action="store_true")

    preload_parser = subparsers.add_parser("preload", help="Pre-load stats for every team playing on a day")
    preload_parser.add_argument("--date", default=None, help="Schedule day YYYY-MM-DD (default: today, US/Eastern)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "team-stats":
            return team_stats(args)
        elif args.command == "status":
            return status(args)
        elif args.command == "suggest":
            return suggest(args)
        elif args.command == "alias":
            return alias(args)
        elif args.command == "rankings":
            return rankings(args)
        elif args.command == "preload":
            return preload(args)
        else:
            parser.print_help()
            return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
