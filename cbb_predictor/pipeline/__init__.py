"""Batch jobs built on the stats cache."""
