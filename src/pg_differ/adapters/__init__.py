"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async PostgreSQL client.

Usage:
    from pg_differ.adapters import AsyncPostgresClient, DatabaseClient
"""

from pg_differ.adapters.base import DatabaseClient, QueryResult
from pg_differ.adapters.postgres import AsyncPostgresClient

__all__ = [
    "AsyncPostgresClient",
    "DatabaseClient",
    "QueryResult",
]
