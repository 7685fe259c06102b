"""Matchgate: join-in-progress admission control and backfill for live matches."""

__version__ = "0.1.0"
