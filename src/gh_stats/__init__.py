"""gh-stats: language statistics across GitHub repositories."""

__version__ = "0.3.0"
