"""Models for declared definitions, live structures and change operations.

This module contains schema-domain models:
- Definition models: ColumnDefinition, the five extension variants,
  TableDefinition, SequenceDefinition (normalized, immutable)
- Structure models: ColumnStructure, ConstraintStructure, IndexStructure,
  TableStructure, SequenceStructure, StructureSnapshot (read from the live
  database, never mutated)
- ChangeOperation: one generated statement with its category and tag

Raw declarative input is validated and normalized in
pg_differ.schema.normalizer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

MAX_BIGINT = 9223372036854775807
MIN_BIGINT = -9223372036854775808


class ObjectKind(str, Enum):
    """Kinds of objects that can be defined."""

    TABLE = "table"
    SEQUENCE = "sequence"


class Category(str, Enum):
    """Execution categories, in the order they run."""

    SEQUENCES = "Sequences"
    TABLES = "Tables"
    EXTENSIONS = "Extensions"
    SEEDS = "Seeds"
    SEQUENCE_VALUES = "Sequence values"


CATEGORY_ORDER: tuple[Category, ...] = (
    Category.SEQUENCES,
    Category.TABLES,
    Category.EXTENSIONS,
    Category.SEEDS,
    Category.SEQUENCE_VALUES,
)


class ExtensionType(str, Enum):
    """Table-level constraint and index variants."""

    INDEX = "index"
    CHECK = "check"
    UNIQUE = "unique"
    PRIMARY_KEY = "primaryKey"
    FOREIGN_KEY = "foreignKey"


# Referenced structures first: a foreign key needs the unique/primary key it points at
CREATION_ORDER: tuple[ExtensionType, ...] = (
    ExtensionType.INDEX,
    ExtensionType.CHECK,
    ExtensionType.UNIQUE,
    ExtensionType.PRIMARY_KEY,
    ExtensionType.FOREIGN_KEY,
)

CLEANUP_ORDER: tuple[ExtensionType, ...] = tuple(reversed(CREATION_ORDER))

CLEANABLE_DEFAULTS: dict[ExtensionType, bool] = {
    ExtensionType.INDEX: False,
    ExtensionType.CHECK: False,
    ExtensionType.UNIQUE: False,
    ExtensionType.PRIMARY_KEY: True,
    ExtensionType.FOREIGN_KEY: False,
}


# ============================================================================
# Definition Models
# ============================================================================


class _Definition(BaseModel):
    model_config = ConfigDict(frozen=True)


class SequenceOptions(_Definition):
    """Sequence attributes shared by sequences and auto-increment columns.

    Example:
        >>> SequenceOptions().max
        9223372036854775807
    """

    start: int | None = 1
    min: int | None = 1
    max: int | None = MAX_BIGINT
    increment: int | None = 1
    cycle: bool = False


class SequenceDefinition(SequenceOptions):
    """A declared sequence with a qualified name."""

    name: str
    force: bool = False


class ColumnDefinition(_Definition):
    """A normalized column.

    ``type`` is canonical (see ``codec.normalize_type``) and ``default``
    is already encoded SQL text.
    """

    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    auto_increment: SequenceOptions | None = None
    former_names: list[str] = Field(default_factory=list)


class IndexDefinition(_Definition):
    type: Literal["index"] = "index"
    columns: list[str]
    name: str | None = None
    using: str = "btree"


class UniqueDefinition(_Definition):
    type: Literal["unique"] = "unique"
    columns: list[str]
    name: str | None = None


class PrimaryKeyDefinition(_Definition):
    type: Literal["primaryKey"] = "primaryKey"
    columns: list[str]
    name: str | None = None


class CheckDefinition(_Definition):
    type: Literal["check"] = "check"
    condition: str
    name: str | None = None


class ForeignKeyReference(_Definition):
    table: str
    columns: list[str]


class ForeignKeyDefinition(_Definition):
    type: Literal["foreignKey"] = "foreignKey"
    columns: list[str]
    references: ForeignKeyReference
    on_update: str = "NO ACTION"
    on_delete: str = "NO ACTION"
    name: str | None = None


ExtensionDefinition = Annotated[
    Union[
        IndexDefinition,
        UniqueDefinition,
        PrimaryKeyDefinition,
        CheckDefinition,
        ForeignKeyDefinition,
    ],
    Field(discriminator="type"),
]


class TableDefinition(_Definition):
    """A normalized table.

    Attributes:
        name: Qualified name (``schema.table``).
        columns: Columns in declaration order.
        extensions: Extension lists keyed by variant.
        seeds: Rows to keep present, as column -> declarative value maps.
        cleanable: Per-variant permission to drop live extensions that
            are not declared.
        force: Drop and recreate the table instead of diffing it.
    """

    name: str
    columns: list[ColumnDefinition]
    extensions: dict[ExtensionType, list[ExtensionDefinition]] = Field(default_factory=dict)
    seeds: list[dict[str, Any]] = Field(default_factory=list)
    cleanable: dict[ExtensionType, bool] = Field(default_factory=lambda: dict(CLEANABLE_DEFAULTS))
    force: bool = False

    def get_column(self, name: str) -> ColumnDefinition | None:
        """Find a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def get_extensions(self, type_: ExtensionType) -> list[ExtensionDefinition]:
        """Declared extensions of one variant (empty list when none)."""
        return list(self.extensions.get(type_, []))


# ============================================================================
# Structure Models (live database)
# ============================================================================


class ColumnStructure(BaseModel):
    """A live column as rendered by the catalog.

    Example:
        >>> col = ColumnStructure(name="id", type="integer")
        >>> col.nullable
        True
    """

    name: str
    type: str
    nullable: bool = True
    default: str | None = None


class ConstraintStructure(BaseModel):
    """A live primary key, unique, foreign key or check constraint."""

    name: str
    type: ExtensionType
    columns: list[str] = Field(default_factory=list)
    references_table: str | None = None
    references_columns: list[str] | None = None
    on_update: str | None = None
    on_delete: str | None = None
    condition: str | None = None


class IndexStructure(BaseModel):
    """A live index that does not back a constraint."""

    name: str
    columns: list[str] = Field(default_factory=list)
    using: str = "btree"


class TableStructure(BaseModel):
    """Live shape of one table."""

    name: str
    columns: list[ColumnStructure] = Field(default_factory=list)
    constraints: list[ConstraintStructure] = Field(default_factory=list)
    indexes: list[IndexStructure] = Field(default_factory=list)

    def get_column(self, name: str) -> ColumnStructure | None:
        """Find a live column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def get_extensions(self, type_: ExtensionType) -> list[ConstraintStructure | IndexStructure]:
        """Live extensions of one variant."""
        if type_ == ExtensionType.INDEX:
            return list(self.indexes)
        return [c for c in self.constraints if c.type == type_]


class SequenceStructure(BaseModel):
    """Live attributes of one sequence."""

    name: str
    start: int | None = None
    min: int | None = None
    max: int | None = None
    increment: int | None = None
    cycle: bool = False


class StructureSnapshot(BaseModel):
    """Read-only view of the live tables and sequences, keyed by qualified name."""

    model_config = ConfigDict(frozen=True)

    tables: dict[str, TableStructure] = Field(default_factory=dict)
    sequences: dict[str, SequenceStructure] = Field(default_factory=dict)

    def get_table(self, name: str) -> TableStructure | None:
        return self.tables.get(name)

    def get_sequence(self, name: str) -> SequenceStructure | None:
        return self.sequences.get(name)


# ============================================================================
# Change Operations
# ============================================================================


@dataclass(frozen=True)
class ChangeOperation:
    """One generated statement.

    Example:
        op = ChangeOperation(Category.SEQUENCES, "create sequence",
                             "create sequence public.users_id_seq start 1;")
    """

    category: Category
    operation: str
    sql: str
