"""Database package."""

from uptimer.database.connection import DatabaseManager

__all__ = ["DatabaseManager"]
