"""PostgreSQL structure reader via pg_catalog and information_schema.

This module reads the live shape of the declared objects:
- Columns: name, formatted type, nullability, default expression
- Constraints: primary key, unique, foreign key, check
- Indexes that do not back a constraint (name, columns, access method)
- Sequences: start, min, max, increment, cycle

Queries run on the differ's shared ``DatabaseClient``; names are embedded
as quoted literals since the client takes no bind parameters.
"""

from typing import Protocol

from pg_differ.adapters.base import DatabaseClient
from pg_differ.schema.codec import DEFAULT_SCHEMA, quote_literal, separate_schema
from pg_differ.schema.models import (
    ColumnStructure,
    ConstraintStructure,
    ExtensionType,
    IndexStructure,
    SequenceStructure,
    StructureSnapshot,
    TableStructure,
)

CONSTRAINT_TYPES: dict[str, ExtensionType] = {
    "p": ExtensionType.PRIMARY_KEY,
    "u": ExtensionType.UNIQUE,
    "f": ExtensionType.FOREIGN_KEY,
    "c": ExtensionType.CHECK,
}

REFERENTIAL_ACTIONS: dict[str, str] = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}


class StructureReader(Protocol):
    """Read-only source of live structures."""

    async def read(
        self,
        client: DatabaseClient,
        tables: list[str],
        sequences: list[str],
    ) -> StructureSnapshot:
        """Read the given qualified tables and sequences.

        Objects that do not exist are absent from the snapshot.
        """
        ...


class CatalogStructureReader:
    """Reads table and sequence structures from the PostgreSQL catalog.

    Usage:
        reader = CatalogStructureReader()
        snapshot = await reader.read(client, ["public.users"], ["public.users_id_seq"])
        snapshot.get_table("public.users")
    """

    async def read(
        self,
        client: DatabaseClient,
        tables: list[str],
        sequences: list[str],
    ) -> StructureSnapshot:
        snapshot_tables: dict[str, TableStructure] = {}
        for name in tables:
            table = await self.read_table(client, name)
            if table is not None:
                snapshot_tables[name] = table

        snapshot_sequences: dict[str, SequenceStructure] = {}
        for name in sequences:
            sequence = await self.read_sequence(client, name)
            if sequence is not None:
                snapshot_sequences[name] = sequence

        return StructureSnapshot(tables=snapshot_tables, sequences=snapshot_sequences)

    async def read_table(self, client: DatabaseClient, name: str) -> TableStructure | None:
        """Read one table, or ``None`` if it does not exist."""
        schema_name, table_name = separate_schema(name)
        schema_name = schema_name or DEFAULT_SCHEMA
        query = f"""
            SELECT c.oid
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = {quote_literal(schema_name)}
              AND c.relname = {quote_literal(table_name)}
              AND c.relkind IN ('r', 'p')
        """
        result = await client.query(query)
        if not result.rows:
            return None

        regclass = quote_literal(f"{schema_name}.{table_name}") + "::regclass"
        return TableStructure(
            name=name,
            columns=await self._get_columns(client, regclass),
            constraints=await self._get_constraints(client, regclass),
            indexes=await self._get_indexes(client, regclass),
        )

    async def _get_columns(self, client: DatabaseClient, regclass: str) -> list[ColumnStructure]:
        """Get columns for a table, in attribute order."""
        query = f"""
            SELECT
                a.attname AS name,
                format_type(a.atttypid, a.atttypmod) AS type,
                NOT a.attnotnull AS nullable,
                pg_get_expr(d.adbin, d.adrelid) AS default
            FROM pg_attribute a
            LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
            WHERE a.attrelid = {regclass}
              AND a.attnum > 0
              AND NOT a.attisdropped
            ORDER BY a.attnum
        """
        result = await client.query(query)
        return [ColumnStructure(**row) for row in result.rows]

    async def _get_constraints(
        self, client: DatabaseClient, regclass: str
    ) -> list[ConstraintStructure]:
        """Get primary key, unique, foreign key and check constraints."""
        query = f"""
            SELECT
                c.conname AS name,
                c.contype::text AS type,
                ARRAY(
                    SELECT a.attname
                    FROM unnest(c.conkey) WITH ORDINALITY AS k(attnum, ordinality)
                    JOIN pg_attribute a ON a.attrelid = c.conrelid AND a.attnum = k.attnum
                    ORDER BY k.ordinality
                ) AS columns,
                rn.nspname || '.' || r.relname AS references_table,
                ARRAY(
                    SELECT a.attname
                    FROM unnest(c.confkey) WITH ORDINALITY AS k(attnum, ordinality)
                    JOIN pg_attribute a ON a.attrelid = c.confrelid AND a.attnum = k.attnum
                    ORDER BY k.ordinality
                ) AS references_columns,
                c.confupdtype::text AS on_update,
                c.confdeltype::text AS on_delete,
                pg_get_constraintdef(c.oid) AS definition
            FROM pg_constraint c
            LEFT JOIN pg_class r ON r.oid = c.confrelid
            LEFT JOIN pg_namespace rn ON rn.oid = r.relnamespace
            WHERE c.conrelid = {regclass}
              AND c.contype IN ('p', 'u', 'f', 'c')
            ORDER BY c.conname
        """
        result = await client.query(query)

        constraints = []
        for row in result.rows:
            type_ = CONSTRAINT_TYPES[row["type"]]
            is_foreign_key = type_ == ExtensionType.FOREIGN_KEY
            constraints.append(
                ConstraintStructure(
                    name=row["name"],
                    type=type_,
                    columns=list(row["columns"] or []),
                    references_table=row["references_table"] if is_foreign_key else None,
                    references_columns=list(row["references_columns"] or []) if is_foreign_key else None,
                    on_update=REFERENTIAL_ACTIONS.get(row["on_update"]) if is_foreign_key else None,
                    on_delete=REFERENTIAL_ACTIONS.get(row["on_delete"]) if is_foreign_key else None,
                    condition=row["definition"] if type_ == ExtensionType.CHECK else None,
                )
            )
        return constraints

    async def _get_indexes(self, client: DatabaseClient, regclass: str) -> list[IndexStructure]:
        """Get indexes for a table (excluding those backing a constraint)."""
        query = f"""
            SELECT
                i.relname AS name,
                am.amname AS using,
                ARRAY(
                    SELECT a.attname
                    FROM unnest(x.indkey::int2[]) WITH ORDINALITY AS k(attnum, ordinality)
                    JOIN pg_attribute a ON a.attrelid = x.indrelid AND a.attnum = k.attnum
                    ORDER BY k.ordinality
                ) AS columns
            FROM pg_index x
            JOIN pg_class i ON i.oid = x.indexrelid
            JOIN pg_am am ON am.oid = i.relam
            WHERE x.indrelid = {regclass}
              AND NOT EXISTS (
                  SELECT 1 FROM pg_constraint c
                  WHERE c.conindid = x.indexrelid AND c.conrelid = x.indrelid
              )
            ORDER BY i.relname
        """
        result = await client.query(query)
        return [
            IndexStructure(name=row["name"], using=row["using"], columns=list(row["columns"] or []))
            for row in result.rows
        ]

    async def read_sequence(self, client: DatabaseClient, name: str) -> SequenceStructure | None:
        """Read one sequence, or ``None`` if it does not exist."""
        schema_name, sequence_name = separate_schema(name)
        query = f"""
            SELECT
                start_value,
                minimum_value,
                maximum_value,
                increment,
                cycle_option
            FROM information_schema.sequences
            WHERE sequence_schema = {quote_literal(schema_name or DEFAULT_SCHEMA)}
              AND sequence_name = {quote_literal(sequence_name)}
        """
        result = await client.query(query)
        if not result.rows:
            return None

        row = result.rows[0]
        return SequenceStructure(
            name=name,
            start=row["start_value"],
            min=row["minimum_value"],
            max=row["maximum_value"],
            increment=row["increment"],
            cycle=row["cycle_option"] == "YES",
        )
