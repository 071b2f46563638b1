"""College basketball half-score predictor: team identity and stats cache."""

__version__ = "0.1.0"
