"""CLI command modules."""

from . import db, matches, schedule

__all__ = [
    "db",
    "matches",
    "schedule",
]
