"""GitHub repository activity as RSS 2.0 feeds."""

__version__ = "1.0.0"
