"""Table, extension, identity and seed differs.

Pure functions comparing a declared ``TableDefinition`` with the live
``TableStructure`` from a ``StructureSnapshot``.  Each returns a list of
``ChangeOperation``; the orchestrator collects them per category and
variant.

Extension diffs run per variant.  Across tables, cleanups go in
``CLEANUP_ORDER`` and additions in ``CREATION_ORDER`` (see
``pg_differ.schema.models``).  A live extension is only dropped when the
table's cleanable policy allows its variant.
"""

import logging

from pg_differ.adapters.base import DatabaseClient
from pg_differ.schema.codec import (
    DEFAULT_SCHEMA,
    TypeGroup,
    check_condition,
    encode_value,
    get_type_group,
    normalize_default,
    normalize_type,
    same_default,
    separate_schema,
)
from pg_differ.schema.models import (
    Category,
    ChangeOperation,
    CheckDefinition,
    ColumnDefinition,
    ConstraintStructure,
    ExtensionType,
    ForeignKeyDefinition,
    IndexDefinition,
    IndexStructure,
    StructureSnapshot,
    TableDefinition,
    TableStructure,
)
from pg_differ.schema.normalizer import auto_increment_sequence_name, nextval_expression

logger = logging.getLogger(__name__)

# Server version needed for "insert ... on conflict do nothing"
SEEDS_MIN_VERSION = (9, 5)


# ============================================================================
# Helpers
# ============================================================================


def _live_table(table: TableDefinition, snapshot: StructureSnapshot) -> TableStructure | None:
    """Live structure to diff against (``None`` when missing or forced)."""
    if table.force:
        return None
    return snapshot.get_table(table.name)


def _column_sql(column: ColumnDefinition) -> str:
    sql = f"{column.name} {column.type}"
    if not column.nullable:
        sql += " not null"
    if column.default is not None:
        sql += f" default {column.default}"
    return sql


def get_column_renames(table: TableDefinition, structure: TableStructure) -> dict[str, str]:
    """Live column name -> declared name, for columns found by a former name."""
    desired_names = {column.name for column in table.columns}
    renames: dict[str, str] = {}
    for column in table.columns:
        if structure.get_column(column.name) is not None:
            continue
        for former in column.former_names:
            if (
                structure.get_column(former) is not None
                and former not in desired_names
                and former not in renames
            ):
                renames[former] = column.name
                break
    return renames


def get_dropped_columns(table: TableDefinition, structure: TableStructure) -> set[str]:
    """Live columns neither declared nor renamed."""
    desired_names = {column.name for column in table.columns}
    renames = get_column_renames(table, structure)
    return {
        column.name
        for column in structure.columns
        if column.name not in desired_names and column.name not in renames
    }


def _extension_key(extension, renames: dict[str, str] | None = None) -> tuple:
    """Shape used to match declared extensions with live ones."""
    renames = renames or {}
    columns = tuple(renames.get(c, c) for c in getattr(extension, "columns", []))

    if isinstance(extension, (IndexDefinition, IndexStructure)):
        return columns, extension.using.lower()
    if isinstance(extension, CheckDefinition):
        return (check_condition(extension.condition),)
    if isinstance(extension, ForeignKeyDefinition):
        return (
            columns,
            extension.references.table,
            tuple(extension.references.columns),
            extension.on_update,
            extension.on_delete,
        )
    if isinstance(extension, ConstraintStructure):
        if extension.type == ExtensionType.CHECK:
            return (check_condition(extension.condition or ""),)
        if extension.type == ExtensionType.FOREIGN_KEY:
            return (
                columns,
                extension.references_table,
                tuple(extension.references_columns or []),
                extension.on_update,
                extension.on_delete,
            )
    return (columns,)


def _matches(desired, live, renames: dict[str, str]) -> bool:
    # The server rewrites check expressions, so named checks match by name
    if isinstance(desired, CheckDefinition) and desired.name is not None:
        return desired.name == live.name
    return _extension_key(desired, None) == _extension_key(live, renames)


# ============================================================================
# Tables
# ============================================================================


def build_create_table_sql(table: TableDefinition) -> str:
    columns = ", ".join(_column_sql(column) for column in table.columns)
    return f"create table {table.name} ({columns});"


def get_table_changes(
    table: TableDefinition,
    snapshot: StructureSnapshot,
    default_schema: str = DEFAULT_SCHEMA,
) -> list[ChangeOperation]:
    """Column-level statements for one table (category ``Tables``).

    Args:
        table: Declared table.
        snapshot: Live structures.
        default_schema: Schema the catalog leaves out of sequence names.

    Returns:
        Create/drop statements for missing or forced tables, otherwise
        rename, add, alter and drop column statements.
    """
    operations: list[ChangeOperation] = []

    if table.force:
        operations.append(
            ChangeOperation(Category.TABLES, "drop table", f"drop table if exists {table.name} cascade;")
        )

    structure = _live_table(table, snapshot)
    if structure is None:
        operations.append(ChangeOperation(Category.TABLES, "create table", build_create_table_sql(table)))
        return operations

    prefix = f"alter table {table.name}"
    renames = get_column_renames(table, structure)
    renamed_from = {new: old for old, new in renames.items()}

    for column in table.columns:
        old_name = renamed_from.get(column.name)
        if old_name is not None:
            operations.append(
                ChangeOperation(
                    Category.TABLES,
                    "rename column",
                    f"{prefix} rename column {old_name} to {column.name};",
                )
            )
            live = structure.get_column(old_name)
        else:
            live = structure.get_column(column.name)

        if live is None:
            operations.append(
                ChangeOperation(Category.TABLES, "add column", f"{prefix} add column {_column_sql(column)};")
            )
            continue

        alter = f"{prefix} alter column {column.name}"
        if normalize_type(live.type) != column.type:
            operations.append(
                ChangeOperation(
                    Category.TABLES,
                    "alter column",
                    f"{alter} type {column.type} using {column.name}::{column.type};",
                )
            )
        live_default = normalize_default(live.default, column.type, default_schema)
        if not same_default(live_default, column.default, column.type):
            if column.default is None:
                sql = f"{alter} drop default;"
            else:
                sql = f"{alter} set default {column.default};"
            operations.append(ChangeOperation(Category.TABLES, "alter column", sql))
        if live.nullable != column.nullable:
            sql = f"{alter} drop not null;" if column.nullable else f"{alter} set not null;"
            operations.append(ChangeOperation(Category.TABLES, "alter column", sql))

    for name in sorted(get_dropped_columns(table, structure)):
        operations.append(
            ChangeOperation(Category.TABLES, "drop column", f"{prefix} drop column {name};")
        )

    return operations


# ============================================================================
# Extensions
# ============================================================================


def build_add_extension_sql(table_name: str, extension) -> str:
    """DDL creating one declared extension.

    Example:
        >>> from pg_differ.schema.models import PrimaryKeyDefinition
        >>> build_add_extension_sql("public.users", PrimaryKeyDefinition(columns=["id"]))
        'alter table public.users add primary key (id);'
    """
    columns = ", ".join(getattr(extension, "columns", []))

    if isinstance(extension, IndexDefinition):
        name = f" {extension.name}" if extension.name else ""
        return f"create index{name} on {table_name} using {extension.using} ({columns});"

    constraint = f" constraint {extension.name}" if extension.name else ""
    prefix = f"alter table {table_name} add{constraint}"

    if isinstance(extension, CheckDefinition):
        return f"{prefix} check ({extension.condition});"
    if isinstance(extension, ForeignKeyDefinition):
        references = ", ".join(extension.references.columns)
        return (
            f"{prefix} foreign key ({columns}) references {extension.references.table} ({references})"
            f" on update {extension.on_update.lower()} on delete {extension.on_delete.lower()};"
        )
    if extension.type == ExtensionType.PRIMARY_KEY:
        return f"{prefix} primary key ({columns});"
    return f"{prefix} unique ({columns});"


def build_drop_extension_sql(table_name: str, type_: ExtensionType, extension) -> str:
    if type_ == ExtensionType.INDEX:
        schema, _ = separate_schema(table_name)
        return f"drop index if exists {schema}.{extension.name};"
    return f"alter table {table_name} drop constraint if exists {extension.name};"


def get_extension_cleanup(
    table: TableDefinition,
    type_: ExtensionType,
    snapshot: StructureSnapshot,
) -> list[ChangeOperation]:
    """Drop live extensions of one variant that are no longer declared.

    Nothing is dropped unless ``table.cleanable[type_]`` is set.
    Extensions on columns that are being dropped are left to the server,
    which removes them together with the column.
    """
    structure = _live_table(table, snapshot)
    if structure is None or not table.cleanable.get(type_, False):
        return []

    renames = get_column_renames(table, structure)
    dropped = get_dropped_columns(table, structure)
    desired = table.get_extensions(type_)

    operations = []
    for live in structure.get_extensions(type_):
        if any(_matches(d, live, renames) for d in desired):
            continue
        if dropped.intersection(getattr(live, "columns", [])):
            continue
        operations.append(
            ChangeOperation(
                Category.EXTENSIONS,
                f"drop {type_.value}",
                build_drop_extension_sql(table.name, type_, live),
            )
        )
    return operations


def get_extension_additions(
    table: TableDefinition,
    type_: ExtensionType,
    snapshot: StructureSnapshot,
) -> list[ChangeOperation]:
    """Create declared extensions of one variant missing from the live table."""
    structure = _live_table(table, snapshot)
    if structure is None:
        live_extensions = []
        renames: dict[str, str] = {}
    else:
        live_extensions = structure.get_extensions(type_)
        renames = get_column_renames(table, structure)

    operations = []
    for extension in table.get_extensions(type_):
        if any(_matches(extension, live, renames) for live in live_extensions):
            continue
        operations.append(
            ChangeOperation(
                Category.EXTENSIONS,
                f"add {type_.value}",
                build_add_extension_sql(table.name, extension),
            )
        )
    return operations


# ============================================================================
# Identity columns
# ============================================================================


def get_identity_changes(
    table: TableDefinition,
    snapshot: StructureSnapshot,
    default_schema: str = DEFAULT_SCHEMA,
) -> list[ChangeOperation]:
    """Attach or detach backing sequences of auto-increment columns.

    A column that becomes auto-increment (or is created as one) gets its
    sequence ``owned by`` it; a live column still defaulting to its backing
    sequence whose auto-increment was removed releases it with
    ``owned by none``.
    """
    structure = _live_table(table, snapshot)
    renames = get_column_renames(table, structure) if structure is not None else {}
    renamed_from = {new: old for old, new in renames.items()}

    operations = []
    for column in table.columns:
        sequence = auto_increment_sequence_name(table.name, column.name)
        live = None
        live_default = None
        if structure is not None:
            live = structure.get_column(renamed_from.get(column.name, column.name))
            if live is not None:
                live_default = normalize_default(live.default, live.type, default_schema)

        if column.auto_increment is not None:
            if live is None or live_default != column.default:
                operations.append(
                    ChangeOperation(
                        Category.EXTENSIONS,
                        "update identity",
                        f"alter sequence {sequence} owned by {table.name}.{column.name};",
                    )
                )
        elif live is not None and live_default == nextval_expression(sequence):
            operations.append(
                ChangeOperation(
                    Category.EXTENSIONS,
                    "update identity",
                    f"alter sequence {sequence} owned by none;",
                )
            )
    return operations


# ============================================================================
# Seeds
# ============================================================================


def parse_server_version(version: str | None) -> tuple[int, ...] | None:
    """Extract ``(major, minor)`` from a ``select version()`` string.

    Example:
        >>> parse_server_version("PostgreSQL 14.5 (Debian 14.5-1.pgdg110+1) on x86_64")
        (14, 5)
        >>> parse_server_version("PostgreSQL 9.4.26 on x86_64")
        (9, 4)
    """
    if not version:
        return None
    for token in version.split():
        parts = token.split(".")
        if parts[0].isdigit():
            return tuple(int(p) for p in parts[:2] if p.isdigit())
    return None


def _seed_condition(table: TableDefinition, row: dict) -> str:
    """Row lookup predicate; ``json`` has no equality operator, so JSON columns compare as ``jsonb``."""
    terms = []
    for key, value in row.items():
        literal = encode_value(value) or "null"
        column = table.get_column(key)
        if column is not None and get_type_group(column.type) is TypeGroup.JSON:
            terms.append(f"{key}::jsonb is not distinct from {literal}::jsonb")
        else:
            terms.append(f"{key} is not distinct from {literal}")
    return " and ".join(terms)


def build_insert_sql(table_name: str, row: dict) -> str:
    """Idempotent insert for one seed row.

    Example:
        >>> build_insert_sql("public.roles", {"id": 1, "name": "admin"})
        "insert into public.roles (id, name) values (1, 'admin') on conflict do nothing;"
    """
    columns = ", ".join(row)
    values = ", ".join(encode_value(value) or "null" for value in row.values())
    return f"insert into {table_name} ({columns}) values ({values}) on conflict do nothing;"


async def get_seed_changes(
    client: DatabaseClient,
    table: TableDefinition,
    snapshot: StructureSnapshot,
    server_version: tuple[int, ...] | None = None,
) -> list[ChangeOperation]:
    """Insert statements for seed rows missing from the live table.

    For an existing table each row is first looked up with a read-only
    ``select exists(...)``; rows already present emit nothing.  Seeding is
    skipped with a warning on servers older than 9.5.
    """
    if not table.seeds:
        return []
    if server_version is not None and server_version < SEEDS_MIN_VERSION:
        logger.warning(
            f"Seeds for {table.name} skipped: server version "
            f"{'.'.join(map(str, server_version))} is below 9.5"
        )
        return []

    structure = _live_table(table, snapshot)
    operations = []
    for row in table.seeds:
        if not row:
            continue
        if structure is not None and all(structure.get_column(key) is not None for key in row):
            result = await client.query(
                f"select exists(select 1 from {table.name} where {_seed_condition(table, row)}) as exists;"
            )
            if result.rows and result.rows[0]["exists"]:
                continue
        operations.append(ChangeOperation(Category.SEEDS, "insert seed", build_insert_sql(table.name, row)))
    return operations


def get_sequence_actualization(
    table: TableDefinition,
    seeded: bool,
    identity_changed: bool,
) -> list[ChangeOperation]:
    """Move backing sequences past the column maximum (``Sequence values``).

    Only emitted for tables that received seed inserts or a new identity.
    The statement is a no-op at run time when the sequence is already
    ahead of the data.
    """
    if not (seeded or identity_changed):
        return []

    operations = []
    for column in table.columns:
        if column.auto_increment is None:
            continue
        sequence = auto_increment_sequence_name(table.name, column.name)
        sql = (
            f"select setval('{sequence}', max({column.name})) from {table.name}"
            f" having max({column.name}) >= (select case when is_called then last_value + 1"
            f" else last_value end from {sequence});"
        )
        operations.append(ChangeOperation(Category.SEQUENCE_VALUES, "actualize sequence", sql))
    return operations
