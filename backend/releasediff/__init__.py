"""ReleaseDiff — change aggregation engine for release documentation."""

__version__ = "1.0.0"
