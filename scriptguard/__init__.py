"""Script Guard - policy rule engine for short-video scripts."""

__version__ = "0.1.0"
