"""Schema normalizer: validate declarative input and build definitions.

Raw table and sequence descriptors (dicts, usually loaded from
``*.schema.json`` files) are validated with pydantic at registration time
and turned into the immutable definitions of ``pg_differ.schema.models``.
Any problem raises ``SchemaValidationError`` naming the offending field
path; nothing is registered for a rejected descriptor.

Usage:
    from pg_differ.schema.normalizer import normalize_table

    table = normalize_table({
        "name": "users",
        "columns": [
            {"name": "id", "type": "bigint", "autoIncrement": True, "primaryKey": True},
            {"name": "name", "type": "character varying(255)"},
        ],
    })
    table.columns[1].type   # 'varchar(255)'
"""

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from pg_differ.errors import SchemaValidationError
from pg_differ.schema.codec import (
    DEFAULT_SCHEMA,
    check_condition,
    encode_value,
    normalize_type,
    qualify,
    separate_schema,
)
from pg_differ.schema.models import (
    CLEANABLE_DEFAULTS,
    CREATION_ORDER,
    CheckDefinition,
    ColumnDefinition,
    ExtensionType,
    ForeignKeyDefinition,
    ForeignKeyReference,
    IndexDefinition,
    PrimaryKeyDefinition,
    SequenceDefinition,
    SequenceOptions,
    TableDefinition,
    UniqueDefinition,
)

REFERENTIAL_ACTIONS = frozenset({"NO ACTION", "RESTRICT", "CASCADE", "SET NULL", "SET DEFAULT"})

# List names used in table descriptors -> extension variant
EXTENSION_LISTS: dict[str, ExtensionType] = {
    "indexes": ExtensionType.INDEX,
    "checks": ExtensionType.CHECK,
    "unique": ExtensionType.UNIQUE,
    "primaryKeys": ExtensionType.PRIMARY_KEY,
    "foreignKeys": ExtensionType.FOREIGN_KEY,
}


# ============================================================================
# Input Descriptors
# ============================================================================


class _Descriptor(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class AutoIncrementInput(_Descriptor):
    start: int | None = None
    min: int | None = None
    max: int | None = None
    increment: int | None = None
    cycle: bool | None = None


class ColumnInput(_Descriptor):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    nullable: bool = True
    default: Any = None
    auto_increment: bool | AutoIncrementInput | None = None
    primary_key: bool = False
    unique: bool = False
    index: bool = False
    former_names: list[str] = Field(default_factory=list)


class IndexInput(_Descriptor):
    columns: list[str] = Field(min_length=1)
    name: str | None = None
    using: str = "btree"


class UniqueInput(_Descriptor):
    columns: list[str] = Field(min_length=1)
    name: str | None = None


class PrimaryKeyInput(_Descriptor):
    columns: list[str] = Field(min_length=1)
    name: str | None = None


class CheckInput(_Descriptor):
    condition: str = Field(min_length=1)
    name: str | None = None


class ReferenceInput(_Descriptor):
    table: str = Field(min_length=1)
    columns: list[str] = Field(min_length=1)


class ForeignKeyInput(_Descriptor):
    columns: list[str] = Field(min_length=1)
    references: ReferenceInput
    on_update: str = "NO ACTION"
    on_delete: str = "NO ACTION"
    name: str | None = None

    @field_validator("on_update", "on_delete")
    @classmethod
    def _check_action(cls, value: str) -> str:
        action = " ".join(value.upper().split())
        if action not in REFERENTIAL_ACTIONS:
            raise ValueError(f"should be one of {sorted(REFERENTIAL_ACTIONS)}")
        return action


class TableInput(_Descriptor):
    name: str = Field(min_length=1)
    columns: list[ColumnInput] = Field(min_length=1)
    indexes: list[IndexInput] | None = None
    unique: list[UniqueInput] | None = None
    primary_keys: list[PrimaryKeyInput] | None = None
    foreign_keys: list[ForeignKeyInput] | None = None
    checks: list[CheckInput] | None = None
    seeds: list[dict[str, Any]] = Field(default_factory=list)
    cleanable: dict[str, bool] | None = None
    force: bool | None = None


class SequenceInput(_Descriptor):
    name: str = Field(min_length=1)
    start: int | None = 1
    min: int | None = 1
    max: int | None = SequenceOptions().max
    increment: int | None = 1
    cycle: bool = False
    force: bool | None = None


# ============================================================================
# Helpers
# ============================================================================


def _format_path(loc: tuple[Any, ...], root: str = "properties") -> str:
    """Render a pydantic error location as ``root.columns[1].type``."""
    path = root
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def _validate(model: type[_Descriptor], properties: Any) -> Any:
    try:
        return model.model_validate(properties)
    except ValidationError as e:
        first = e.errors()[0]
        raise SchemaValidationError(_format_path(tuple(first["loc"])), first["msg"]) from e


def normalize_auto_increment(value: bool | AutoIncrementInput | None) -> SequenceOptions | None:
    """Expand an ``autoIncrement`` option.

    ``True`` gives the default ``SequenceOptions``, an object is merged
    over them, and a false or absent value stays ``None``.
    """
    if isinstance(value, AutoIncrementInput):
        overrides = {k: v for k, v in value.model_dump(exclude_unset=True).items()}
        return SequenceOptions(**overrides)
    if value:
        return SequenceOptions()
    return None


def auto_increment_sequence_name(table_name: str, column_name: str) -> str:
    """Qualified name of the sequence backing an auto-increment column."""
    schema, table = separate_schema(table_name)
    return f"{schema or DEFAULT_SCHEMA}.{table}_{column_name}_seq"


def nextval_expression(sequence_name: str) -> str:
    return f"nextval('{sequence_name}'::regclass)"


def check_constraint_name(table_name: str, condition: str) -> str:
    """Stable name for an unnamed check constraint: ``<table>_<sha1[:8]>_check``.

    The server rewrites check expressions, so unnamed checks are matched
    against live constraints by this name instead of by condition.
    """
    _, table = separate_schema(table_name)
    digest = hashlib.sha1(condition.encode("utf-8")).hexdigest()[:8]
    # identifiers are limited to 63 bytes
    return f"{table[:48]}_{digest}_check"


def normalize_cleanable(cleanable: dict[str, bool] | None) -> dict[ExtensionType, bool]:
    """Merge caller overrides over ``CLEANABLE_DEFAULTS``.

    Keys may be list names (``primaryKeys``) or variant names
    (``primaryKey``).
    """
    result = dict(CLEANABLE_DEFAULTS)
    for key, value in (cleanable or {}).items():
        if key in EXTENSION_LISTS:
            result[EXTENSION_LISTS[key]] = value
            continue
        try:
            result[ExtensionType(key)] = value
        except ValueError:
            raise SchemaValidationError(
                f"properties.cleanable.{key}",
                f"should be one of {sorted(EXTENSION_LISTS)}",
            ) from None
    return result


def _check_columns_exist(columns: list[str], known: set[str], path: str) -> None:
    for column in columns:
        if column not in known:
            raise SchemaValidationError(path, f"unknown column '{column}'")


# ============================================================================
# Public API
# ============================================================================


def normalize_table(
    properties: Any,
    default_schema: str = DEFAULT_SCHEMA,
    force: bool = False,
) -> TableDefinition:
    """Validate a table descriptor and build its ``TableDefinition``.

    Args:
        properties: Table descriptor (``name``, ``columns`` and optional
            ``indexes``, ``unique``, ``primaryKeys``, ``foreignKeys``,
            ``checks``, ``seeds``, ``cleanable``, ``force``).
        default_schema: Schema used for unqualified names.
        force: Used when the descriptor sets no ``force`` of its own.

    Returns:
        The normalized, immutable table definition.

    Raises:
        SchemaValidationError: On any malformed field.
    """
    descriptor: TableInput = _validate(TableInput, properties)
    table_name = qualify(descriptor.name, default_schema)

    known_columns: set[str] = set()
    for index, column in enumerate(descriptor.columns):
        if column.name in known_columns:
            raise SchemaValidationError(
                f"properties.columns[{index}].name",
                f"duplicate column name '{column.name}'",
            )
        known_columns.add(column.name)

    primary_key_columns = {c.name for c in descriptor.columns if c.primary_key}
    for pk in descriptor.primary_keys or []:
        primary_key_columns.update(pk.columns)

    columns: list[ColumnDefinition] = []
    for index, column in enumerate(descriptor.columns):
        auto_increment = normalize_auto_increment(column.auto_increment)
        if auto_increment is not None:
            if column.default is not None:
                raise SchemaValidationError(
                    f"properties.columns[{index}].default",
                    "cannot be combined with autoIncrement",
                )
            default = nextval_expression(auto_increment_sequence_name(table_name, column.name))
        else:
            try:
                default = encode_value(column.default)
            except TypeError as e:
                raise SchemaValidationError(f"properties.columns[{index}].default", str(e)) from e

        columns.append(
            ColumnDefinition(
                name=column.name,
                type=normalize_type(column.type),
                nullable=column.nullable and column.name not in primary_key_columns,
                default=default,
                auto_increment=auto_increment,
                former_names=column.former_names,
            )
        )

    extensions = _merge_extensions(descriptor, table_name, known_columns, default_schema)

    for row_index, row in enumerate(descriptor.seeds):
        for key, value in row.items():
            path = f"properties.seeds[{row_index}].{key}"
            if key not in known_columns:
                raise SchemaValidationError(path, f"unknown column '{key}'")
            try:
                encode_value(value)
            except TypeError as e:
                raise SchemaValidationError(path, str(e)) from e

    return TableDefinition(
        name=table_name,
        columns=columns,
        extensions=extensions,
        seeds=descriptor.seeds,
        cleanable=normalize_cleanable(descriptor.cleanable),
        force=force if descriptor.force is None else descriptor.force,
    )


def _merge_extensions(
    descriptor: TableInput,
    table_name: str,
    known_columns: set[str],
    default_schema: str,
) -> dict[ExtensionType, list]:
    """Union column-flag extensions with the declared lists, by variant.

    Flag-declared primary key columns form one composite key; other
    flags become single-column entries.  Column entries come first.
    Unnamed checks get a name from ``check_constraint_name``.
    """
    merged: dict[ExtensionType, list] = {type_: [] for type_ in CREATION_ORDER}

    flagged_pk = [c.name for c in descriptor.columns if c.primary_key]
    if flagged_pk:
        merged[ExtensionType.PRIMARY_KEY].append(PrimaryKeyDefinition(columns=flagged_pk))
    for column in descriptor.columns:
        if column.unique:
            merged[ExtensionType.UNIQUE].append(UniqueDefinition(columns=[column.name]))
        if column.index:
            merged[ExtensionType.INDEX].append(IndexDefinition(columns=[column.name]))

    for i, item in enumerate(descriptor.indexes or []):
        _check_columns_exist(item.columns, known_columns, f"properties.indexes[{i}].columns")
        merged[ExtensionType.INDEX].append(
            IndexDefinition(columns=item.columns, name=item.name, using=item.using.lower())
        )
    for i, item in enumerate(descriptor.unique or []):
        _check_columns_exist(item.columns, known_columns, f"properties.unique[{i}].columns")
        merged[ExtensionType.UNIQUE].append(UniqueDefinition(columns=item.columns, name=item.name))
    for i, item in enumerate(descriptor.primary_keys or []):
        _check_columns_exist(item.columns, known_columns, f"properties.primaryKeys[{i}].columns")
        merged[ExtensionType.PRIMARY_KEY].append(
            PrimaryKeyDefinition(columns=item.columns, name=item.name)
        )
    for item in descriptor.checks or []:
        condition = check_condition(item.condition)
        merged[ExtensionType.CHECK].append(
            CheckDefinition(
                condition=condition,
                name=item.name or check_constraint_name(table_name, condition),
            )
        )
    for i, item in enumerate(descriptor.foreign_keys or []):
        _check_columns_exist(item.columns, known_columns, f"properties.foreignKeys[{i}].columns")
        if len(item.columns) != len(item.references.columns):
            raise SchemaValidationError(
                f"properties.foreignKeys[{i}].references.columns",
                "should have as many columns as the foreign key",
            )
        merged[ExtensionType.FOREIGN_KEY].append(
            ForeignKeyDefinition(
                columns=item.columns,
                references=ForeignKeyReference(
                    table=qualify(item.references.table, default_schema),
                    columns=item.references.columns,
                ),
                on_update=item.on_update,
                on_delete=item.on_delete,
                name=item.name,
            )
        )

    if len(merged[ExtensionType.PRIMARY_KEY]) > 1:
        raise SchemaValidationError("properties.primaryKeys", "a table can have only one primary key")

    return {type_: items for type_, items in merged.items() if items}


def normalize_sequence(
    properties: Any,
    default_schema: str = DEFAULT_SCHEMA,
    force: bool = False,
) -> SequenceDefinition:
    """Validate a sequence descriptor and apply defaults (*force* as in ``normalize_table``)."""
    descriptor: SequenceInput = _validate(SequenceInput, properties)
    return SequenceDefinition(
        name=qualify(descriptor.name, default_schema),
        start=descriptor.start,
        min=descriptor.min,
        max=descriptor.max,
        increment=descriptor.increment,
        cycle=descriptor.cycle,
        force=force if descriptor.force is None else descriptor.force,
    )


def auto_increment_sequences(table: TableDefinition) -> list[SequenceDefinition]:
    """Backing sequences for the table's auto-increment columns.

    A forced table forces its sequences too: dropping the table with
    ``cascade`` would otherwise drop sequences it owns.
    """
    return [
        SequenceDefinition(
            name=auto_increment_sequence_name(table.name, column.name),
            force=table.force,
            **column.auto_increment.model_dump(),
        )
        for column in table.columns
        if column.auto_increment is not None
    ]
