"""Schema definitions, value codec, differs and ordering.

Usage:
    from pg_differ.schema import normalize_table, order_operations
    from pg_differ.schema import CatalogStructureReader, StructureSnapshot
"""

from pg_differ.schema.codec import decode_value, encode_value, normalize_type, quote_literal
from pg_differ.schema.introspector import CatalogStructureReader, StructureReader
from pg_differ.schema.loader import load_schemas
from pg_differ.schema.models import (
    Category,
    ChangeOperation,
    ExtensionType,
    ObjectKind,
    SequenceDefinition,
    SequenceStructure,
    StructureSnapshot,
    TableDefinition,
    TableStructure,
)
from pg_differ.schema.normalizer import normalize_sequence, normalize_table
from pg_differ.schema.ordering import ExecutionPlan, order_operations

__all__ = [
    "decode_value",
    "encode_value",
    "normalize_type",
    "quote_literal",
    "CatalogStructureReader",
    "StructureReader",
    "load_schemas",
    "Category",
    "ChangeOperation",
    "ExtensionType",
    "ObjectKind",
    "SequenceDefinition",
    "SequenceStructure",
    "StructureSnapshot",
    "TableDefinition",
    "TableStructure",
    "normalize_sequence",
    "normalize_table",
    "ExecutionPlan",
    "order_operations",
]
