"""pg-differ: declarative schema synchronization for PostgreSQL.

Declare tables and sequences as data, and pg-differ computes and applies
the DDL that brings a live database in line with them, in one
transaction.

Usage:
    from pg_differ import Differ, AsyncPostgresClient
    from pg_differ import load_differ_config, get_client
    from pg_differ import SchemaValidationError
"""

import logging

__version__ = "0.1.0"

# Adapters
from pg_differ.adapters.base import DatabaseClient, QueryResult
from pg_differ.adapters.postgres import AsyncPostgresClient

# Config
from pg_differ.config.loader import load_differ_config
from pg_differ.config.models import DatabaseProfile, DifferConfig, ReconnectionPolicy, SyncOptions

# Core
from pg_differ.differ import Differ, SchemaRegistry
from pg_differ.errors import DifferError, ProfileNotFoundError, SchemaValidationError
from pg_differ.executor import SyncResult, execute_plan

# Factory
from pg_differ.factory import connect_with_retry, get_client, resolve_url

# Schema
from pg_differ.schema.models import ObjectKind

__all__ = [
    # Adapters
    "DatabaseClient",
    "QueryResult",
    "AsyncPostgresClient",
    # Config
    "load_differ_config",
    "DatabaseProfile",
    "DifferConfig",
    "ReconnectionPolicy",
    "SyncOptions",
    # Core
    "Differ",
    "SchemaRegistry",
    "ObjectKind",
    "SyncResult",
    "execute_plan",
    # Errors
    "DifferError",
    "ProfileNotFoundError",
    "SchemaValidationError",
    # Factory
    "connect_with_retry",
    "get_client",
    "resolve_url",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
