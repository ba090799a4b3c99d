"""Persistence for integrations, campaign metrics and system logs."""
from .schema import init_database
from .store import DataStore, SQLiteDataStore

__all__ = ["DataStore", "SQLiteDataStore", "init_database"]
