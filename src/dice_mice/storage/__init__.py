"""Persistence layer for characters and class reference data."""

from dice_mice.storage.database import Database, get_database, reset_database

__all__ = ["Database", "get_database", "reset_database"]
