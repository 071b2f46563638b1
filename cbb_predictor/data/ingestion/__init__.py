"""Data ingestion workflows for the live schedule feed."""

from .game_history import HistoricalGameFetcher, HistoryFetchReport, parse_game_stats

__all__ = [
    "HistoricalGameFetcher",
    "HistoryFetchReport",
    "parse_game_stats",
]
