"""Persistence layer: Supabase client and the in-memory development backend."""

from .client import (
    DatabaseClient,
    DatabaseError,
    SupabaseDatabaseClient,
    get_database_client,
    set_database_client,
)
from .memory import InMemoryDatabaseClient, parse_timestamp

__all__ = [
    "DatabaseClient",
    "DatabaseError",
    "InMemoryDatabaseClient",
    "SupabaseDatabaseClient",
    "get_database_client",
    "parse_timestamp",
    "set_database_client",
]
