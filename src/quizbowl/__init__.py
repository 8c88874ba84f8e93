"""quizbowl: live-control client for quiz bowl matches and brackets."""

__version__ = "0.1.0"
