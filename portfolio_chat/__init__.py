"""Chat backend and client for the portfolio website."""

__version__ = "0.1.0"
