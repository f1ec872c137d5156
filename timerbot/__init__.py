"""Twitch chat timer bot."""

__version__ = "1.0.0"
