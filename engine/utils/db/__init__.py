"""
Database utilities for the Equalizer engine.

Provides connection management for PostgreSQL and a mock in-memory
implementation for development/testing. Table access lives with the tools
that own the tables (see tools.equalize.equalize_store).
"""

from utils.db.connection import get_db_connection, init_db, reset_mock_db, DB_TYPE

__all__ = [
    "get_db_connection",
    "init_db",
    "reset_mock_db",
    "DB_TYPE",
]
