"""Operation orderer: turn collected change operations into an execution plan.

Usage:
    from pg_differ.schema.ordering import order_operations

    plan = order_operations(operations)
    for sql in plan.flatten():
        ...
"""

from collections import defaultdict
from dataclasses import dataclass, field

from pg_differ.schema.models import CATEGORY_ORDER, Category, ChangeOperation

# Extensions run in this tag order; other tags follow in their original order
EXTENSION_PRIORITY: tuple[str, ...] = (
    "drop foreignKey",
    "drop primaryKey",
    "drop unique",
    "delete rows",
    "add unique",
)


@dataclass
class ExecutionPlan:
    """Ordered, de-duplicated statements per category.

    Example:
        plan = ExecutionPlan(statements={Category.TABLES: ["create table public.t (id integer);"]})
        plan.flatten()
        # ['create table public.t (id integer);']
    """

    statements: dict[Category, list[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(self.statements.values())

    def get(self, category: Category) -> list[str]:
        return list(self.statements.get(category, []))

    def flatten(self) -> list[str]:
        """All statements in execution order."""
        return [sql for category in CATEGORY_ORDER for sql in self.statements.get(category, [])]


def _priority(operation: ChangeOperation) -> int:
    try:
        return EXTENSION_PRIORITY.index(operation.operation)
    except ValueError:
        return len(EXTENSION_PRIORITY)


def _unique(statements: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for sql in statements:
        if sql not in seen:
            seen.add(sql)
            result.append(sql)
    return result


def order_operations(operations: list[ChangeOperation]) -> ExecutionPlan:
    """Group operations by category, order Extensions and drop duplicates.

    Only the Extensions category is reordered (stably, by
    ``EXTENSION_PRIORITY``); every other category keeps the order in which
    operations were collected.  Exact duplicate SQL keeps its first
    occurrence.

    Args:
        operations: Operations from all differs, in registration order.

    Returns:
        ExecutionPlan with one statement list per non-empty category.
    """
    grouped: dict[Category, list[ChangeOperation]] = defaultdict(list)
    for operation in operations:
        grouped[operation.category].append(operation)

    if Category.EXTENSIONS in grouped:
        grouped[Category.EXTENSIONS] = sorted(grouped[Category.EXTENSIONS], key=_priority)

    statements = {}
    for category in CATEGORY_ORDER:
        if grouped.get(category):
            statements[category] = _unique([op.sql for op in grouped[category]])
    return ExecutionPlan(statements=statements)
