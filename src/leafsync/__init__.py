"""leafsync - Sync notes and markdown leaves with a GitHub repository."""

__version__ = "0.1.0"
