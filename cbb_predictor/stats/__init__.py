"""Per-team stats cache, aggregation and prompt formatting."""
