"""Differ -- declarative schema synchronization for PostgreSQL.

Register table and sequence definitions, then ``sync()`` to bring the
live database in line with them:

1. Connect (retrying per the reconnection policy)
2. Read the live structures of every declared object
3. Run all differs concurrently and collect their change operations
4. Order them and execute them in one transaction

Each ``Differ`` owns its own ``SchemaRegistry``; instances never share
definitions.

Usage:
    from pg_differ import Differ

    differ = Differ(client=client)
    differ.define("table", {
        "name": "users",
        "columns": [
            {"name": "id", "type": "bigint", "autoIncrement": True, "primaryKey": True},
            {"name": "name", "type": "varchar(255)"},
        ],
    })
    result = await differ.sync()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pg_differ.adapters.base import DatabaseClient
from pg_differ.adapters.postgres import AsyncPostgresClient
from pg_differ.config.models import DifferConfig, SyncOptions
from pg_differ.errors import SchemaValidationError
from pg_differ.executor import SyncResult, execute_plan
from pg_differ.factory import connect_with_retry, get_profile, resolve_url
from pg_differ.schema.codec import qualify
from pg_differ.schema.introspector import CatalogStructureReader, StructureReader
from pg_differ.schema.loader import load_schemas
from pg_differ.schema.models import (
    CLEANUP_ORDER,
    CREATION_ORDER,
    ChangeOperation,
    ObjectKind,
    SequenceDefinition,
    SequenceStructure,
    TableDefinition,
    TableStructure,
)
from pg_differ.schema.normalizer import auto_increment_sequences, normalize_sequence, normalize_table
from pg_differ.schema.ordering import ExecutionPlan, order_operations
from pg_differ.schema.sequence import get_sequence_changes
from pg_differ.schema.table import (
    get_extension_additions,
    get_extension_cleanup,
    get_identity_changes,
    get_seed_changes,
    get_sequence_actualization,
    get_table_changes,
    parse_server_version,
)

logger = logging.getLogger(__name__)

Definition = TableDefinition | SequenceDefinition


@dataclass
class SchemaRegistry:
    """Declared tables and sequences, keyed by qualified name.

    Redefining a name replaces the earlier definition in place.
    """

    tables: dict[str, TableDefinition] = field(default_factory=dict)
    sequences: dict[str, SequenceDefinition] = field(default_factory=dict)

    def register(self, definition: Definition) -> None:
        if isinstance(definition, TableDefinition):
            self.tables[definition.name] = definition
        else:
            self.sequences[definition.name] = definition

    def all_sequences(self) -> list[SequenceDefinition]:
        """Declared sequences followed by auto-increment backing sequences.

        A declared sequence wins over a backing sequence of the same name.
        """
        result = dict(self.sequences)
        for table in self.tables.values():
            for sequence in auto_increment_sequences(table):
                result.setdefault(sequence.name, sequence)
        return list(result.values())


def _parse_kind(kind: Any) -> ObjectKind:
    try:
        return ObjectKind(kind)
    except ValueError:
        raise SchemaValidationError(
            "type", f"should be one of {[k.value for k in ObjectKind]}"
        ) from None


class Differ:
    """Declarative schema synchronizer.

    Args:
        client: Client to run on.  When omitted, one is created from the
            configured profile on first use.
        config: Differ configuration (reconnection policy, placeholders,
            profiles).  A configured ``schema_folder`` is imported at once.
        reader: Structure reader (default: ``CatalogStructureReader``).
        default_schema: Schema for unqualified names (default: from config).
        force: Recreate definitions that do not set ``force`` themselves
            (default: from config).
    """

    def __init__(
        self,
        client: DatabaseClient | None = None,
        config: DifferConfig | None = None,
        reader: StructureReader | None = None,
        default_schema: str | None = None,
        force: bool | None = None,
    ) -> None:
        self.config = config or DifferConfig()
        self.default_schema = default_schema or self.config.default_schema
        self.force = self.config.force if force is None else force
        self.client = client
        self.reader = reader or CatalogStructureReader()
        self.registry = SchemaRegistry()
        self.server_version: tuple[int, ...] | None = None

        if self.config.schema_folder:
            self.import_schemas(self.config.schema_folder)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _normalize(self, kind: Any, properties: Any) -> Definition:
        if _parse_kind(kind) is ObjectKind.TABLE:
            return normalize_table(properties, self.default_schema, self.force)
        return normalize_sequence(properties, self.default_schema, self.force)

    def define(self, kind: ObjectKind | str, properties: Any) -> Definition:
        """Validate and register one definition.

        Args:
            kind: ``"table"`` or ``"sequence"``.
            properties: Table or sequence descriptor.

        Returns:
            The normalized definition.

        Raises:
            SchemaValidationError: For an unknown kind or malformed
                properties; nothing is registered.
        """
        definition = self._normalize(kind, properties)
        self.registry.register(definition)
        return definition

    def define_table(self, properties: Any) -> TableDefinition:
        return self.define(ObjectKind.TABLE, properties)

    def define_sequence(self, properties: Any) -> SequenceDefinition:
        return self.define(ObjectKind.SEQUENCE, properties)

    def import_schemas(
        self,
        path: str | Path,
        placeholders: dict[str, str] | None = None,
    ) -> list[Definition]:
        """Register every ``*.schema.json`` file in *path*.

        All files are validated before any is registered.
        """
        if placeholders is None:
            placeholders = self.config.placeholders

        definitions = []
        for document in load_schemas(path, placeholders):
            if not isinstance(document, dict):
                raise SchemaValidationError("", "schema file must contain an object")
            definitions.append(self._normalize(document.get("type"), document.get("properties")))

        for definition in definitions:
            self.registry.register(definition)
        return definitions

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _get_client(self) -> DatabaseClient:
        if self.client is None:
            _, profile = get_profile(self.config)
            self.client = AsyncPostgresClient(resolve_url(profile))
        return self.client

    async def _read_server_version(self, client: DatabaseClient) -> tuple[int, ...] | None:
        result = await client.query("select version();")
        version = result.rows[0]["version"] if result.rows else None
        logger.info(f"Current version PostgreSQL: {version}")
        return parse_server_version(version)

    async def plan(self) -> ExecutionPlan:
        """Compute the ordered statements without executing them.

        The client must be connected.  Only read-only queries are issued.
        """
        client = self._get_client()
        self.server_version = await self._read_server_version(client)

        tables = list(self.registry.tables.values())
        sequences = self.registry.all_sequences()
        snapshot = await self.reader.read(
            client,
            [table.name for table in tables],
            [sequence.name for sequence in sequences],
        )

        sequence_changes, seed_changes = await asyncio.gather(
            asyncio.gather(*(get_sequence_changes(client, s, snapshot) for s in sequences)),
            asyncio.gather(
                *(get_seed_changes(client, t, snapshot, self.server_version) for t in tables)
            ),
        )

        operations: list[ChangeOperation] = []
        for changes in sequence_changes:
            operations.extend(changes)
        for table in tables:
            operations.extend(get_table_changes(table, snapshot, self.default_schema))
        for type_ in CLEANUP_ORDER:
            for table in tables:
                operations.extend(get_extension_cleanup(table, type_, snapshot))
        for type_ in CREATION_ORDER:
            for table in tables:
                operations.extend(get_extension_additions(table, type_, snapshot))

        identity_changes = [get_identity_changes(t, snapshot, self.default_schema) for t in tables]
        for changes in identity_changes:
            operations.extend(changes)
        for changes in seed_changes:
            operations.extend(changes)
        for table, seeds, identity in zip(tables, seed_changes, identity_changes):
            operations.extend(get_sequence_actualization(table, bool(seeds), bool(identity)))

        return order_operations(operations)

    # ------------------------------------------------------------------
    # Sync / Read
    # ------------------------------------------------------------------

    async def sync(self, options: SyncOptions | dict | None = None) -> SyncResult:
        """Synchronize the database with the registered definitions.

        Args:
            options: ``SyncOptions`` or a dict such as ``{"transaction": False}``.

        Returns:
            SyncResult with the executed statements and inserted seed count.

        Raises:
            Exception: Connection errors once retries are exhausted, or the
                first failing statement's error after rollback.
        """
        options = SyncOptions.model_validate(options or {})
        client = self._get_client()

        logger.info("Sync started")
        await connect_with_retry(client, self.config.reconnection)
        try:
            plan = await self.plan()
            result = await execute_plan(client, plan, transaction=options.transaction)
        finally:
            await client.end()

        if result.changed:
            logger.info("Sync successful")
        return result

    async def read(self, kind: ObjectKind | str, name: str) -> TableStructure | SequenceStructure | None:
        """Read the live structure of one table or sequence.

        Returns:
            The structure, or ``None`` when the object does not exist.
        """
        kind = _parse_kind(kind)
        name = qualify(name, self.default_schema)
        client = self._get_client()

        await connect_with_retry(client, self.config.reconnection)
        try:
            await client.query("begin;")
            try:
                if kind is ObjectKind.TABLE:
                    snapshot = await self.reader.read(client, [name], [])
                else:
                    snapshot = await self.reader.read(client, [], [name])
            except Exception:
                await client.query("rollback;")
                raise
            await client.query("commit;")
        finally:
            await client.end()

        if kind is ObjectKind.TABLE:
            return snapshot.get_table(name)
        return snapshot.get_sequence(name)
