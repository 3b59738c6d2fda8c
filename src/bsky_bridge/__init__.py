"""Bluesky chat session and sync engine for bridges."""

__version__ = "0.1.0"
