"""Sequence differ.

Compares a declared ``SequenceDefinition`` with the live sequence and
returns the statements that bring the database in line:

- forced: ``drop sequence if exists ... cascade;`` then a full create
- missing: a full ``create sequence``
- present: one ``alter sequence`` with the changed clauses only

When ``min`` or ``max`` changes, the live sequence is asked whether its
current value still fits the new bounds; if it does not, the alter also
restarts the sequence at ``min``.
"""

import logging
from typing import Any

from pg_differ.adapters.base import DatabaseClient
from pg_differ.schema.models import (
    MAX_BIGINT,
    MIN_BIGINT,
    Category,
    ChangeOperation,
    SequenceDefinition,
    SequenceStructure,
    StructureSnapshot,
)

logger = logging.getLogger(__name__)

COMPARED_ATTRIBUTES = ("start", "min", "max", "increment", "cycle")

DEFAULT_INCREMENT = 1


def implicit_bounds(increment: int | None) -> tuple[int, int]:
    """``(min, max)`` the server uses for ``no minvalue`` and ``no maxvalue``."""
    if increment is not None and increment < 0:
        return MIN_BIGINT, -1
    return 1, MAX_BIGINT


def get_sequence_diff(
    sequence: SequenceDefinition,
    structure: SequenceStructure,
) -> dict[str, Any]:
    """Attributes whose declared value differs from the live one.

    Values are compared as strings, so ``5`` and ``"5"`` are equal.  A
    declared ``None`` bound is compared with the server's implicit one.

    Example:
        >>> live = SequenceStructure(name="public.s", start=1, min=1, max=10, increment=1)
        >>> get_sequence_diff(SequenceDefinition(name="public.s", max=10, increment=5), live)
        {'increment': 5}
    """
    implicit_min, implicit_max = implicit_bounds(sequence.increment)
    diff: dict[str, Any] = {}
    for attribute in COMPARED_ATTRIBUTES:
        desired = getattr(sequence, attribute)
        observed = getattr(structure, attribute)
        if desired is None and attribute == "min":
            desired_text = str(implicit_min)
        elif desired is None and attribute == "max":
            desired_text = str(implicit_max)
        else:
            desired_text = str(desired)
        if desired_text != str(observed):
            diff[attribute] = desired
    return diff


def render_clauses(attributes: dict[str, Any]) -> list[str]:
    """Render ``create``/``alter sequence`` clauses.

    Only keys present in *attributes* are rendered; ``current`` becomes
    ``restart with`` and is skipped when ``None``.
    """
    chunks: list[str] = []
    for key, value in attributes.items():
        if key == "start":
            chunks.append(f"start {value}" if value is not None else "no start")
        elif key == "min":
            chunks.append(f"minvalue {value}" if value is not None else "no minvalue")
        elif key == "max":
            chunks.append(f"maxvalue {value}" if value is not None else "no maxvalue")
        elif key == "increment":
            chunks.append(f"increment {value if value is not None else DEFAULT_INCREMENT}")
        elif key == "cycle":
            chunks.append("cycle" if value else "no cycle")
        elif key == "current" and value is not None:
            chunks.append(f"restart with {value}")
    return chunks


def build_create_sql(sequence: SequenceDefinition) -> str:
    attributes = {attribute: getattr(sequence, attribute) for attribute in COMPARED_ATTRIBUTES}
    return " ".join([f"create sequence {sequence.name}", *render_clauses(attributes)]) + ";"


def build_alter_sql(name: str, diff: dict[str, Any]) -> str | None:
    chunks = render_clauses(diff)
    if not chunks:
        return None
    return " ".join([f"alter sequence {name}", *chunks]) + ";"


def build_range_check_sql(name: str, min_value: int | None, max_value: int | None) -> str:
    """Query telling whether the current value lies within ``[min, max]``.

    Example:
        >>> build_range_check_sql("public.s", 1, 100)
        'select 1 <= last_value and last_value <= 100 as correct from public.s;'
    """
    conditions = []
    if min_value is not None:
        conditions.append(f"{min_value} <= last_value")
    if max_value is not None:
        conditions.append(f"last_value <= {max_value}")
    condition = " and ".join(conditions) or "true"
    return f"select {condition} as correct from {name};"


async def get_sequence_changes(
    client: DatabaseClient,
    sequence: SequenceDefinition,
    snapshot: StructureSnapshot,
) -> list[ChangeOperation]:
    """Statements that make the live sequence match *sequence*.

    Args:
        client: Connected client, used only for the read-only range check.
        sequence: Declared sequence.
        snapshot: Live structures.

    Returns:
        Operations in category ``Sequences`` (empty when nothing changed).
    """
    if sequence.force:
        return [
            ChangeOperation(
                Category.SEQUENCES,
                "drop sequence",
                f"drop sequence if exists {sequence.name} cascade;",
            ),
            ChangeOperation(Category.SEQUENCES, "create sequence", build_create_sql(sequence)),
        ]

    structure = snapshot.get_sequence(sequence.name)
    if structure is None:
        return [ChangeOperation(Category.SEQUENCES, "create sequence", build_create_sql(sequence))]

    diff = get_sequence_diff(sequence, structure)
    if "min" in diff or "max" in diff:
        result = await client.query(build_range_check_sql(sequence.name, sequence.min, sequence.max))
        if result.rows and not result.rows[0]["correct"]:
            logger.info(f"Sequence {sequence.name} is out of its new range, restarting at {sequence.min}")
            diff["current"] = sequence.min

    sql = build_alter_sql(sequence.name, diff)
    if sql is None:
        return []
    return [ChangeOperation(Category.SEQUENCES, "alter sequence", sql)]
