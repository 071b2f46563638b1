"""Pre-load team stats for every game on a day's schedule.

Run before a prediction session so lookups are served from the cache
instead of walking the scoreboard feed on demand.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cbb_predictor.config import StatsCacheConfig
from cbb_predictor.data.scrapers.ncaa_scoreboard import NCAAScoreboardClient
from cbb_predictor.pipeline.preload import preload_teams
from cbb_predictor.stats.cache_manager import StatsCacheManager


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--data-dir", default=None, help="Data directory (default: $CBB_DATA_DIR or ./data)")
    parser.add_argument("--date", default=None, help="Schedule day YYYY-MM-DD (default: today, US/Eastern)")
    parser.add_argument("--summary-json", default=None, help="Optional path to write the summary as JSON")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = StatsCacheConfig.from_env(**({"data_dir": args.data_dir} if args.data_dir else {}))
    feed = NCAAScoreboardClient(
        base_url=config.api_base,
        scoreboard_timeout=config.scoreboard_timeout_seconds,
        detail_timeout=config.detail_timeout_seconds,
    )
    manager = StatsCacheManager.from_config(config, feed=feed)
    day = datetime.strptime(args.date, "%Y-%m-%d").date() if args.date else None

    def progress(index, total, team_id, outcome, message):
        print(f"[{index}/{total}] {team_id}... {message}")

    try:
        summary = preload_teams(manager, feed, day=day, progress=progress)
    except requests.RequestException as exc:
        print(f"Pre-load failed: {exc}", file=sys.stderr)
        return 1

    print(
        f"Total teams: {summary.total} | Used cache: {summary.cached} | "
        f"Fetched new: {summary.fetched} | Failed: {summary.failed} | Time: {summary.elapsed_seconds:.2f}s"
    )
    if args.summary_json:
        out = Path(args.summary_json)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w") as f:
            json.dump(summary.to_dict(), f, indent=2)
        print(f"Summary written to {out}")

    if summary.failed:
        print(f"Warning: {summary.failed} team(s) have no game data: {', '.join(summary.failures)}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
