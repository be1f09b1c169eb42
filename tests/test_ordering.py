"""Tests for the operation orderer."""

from pg_differ.schema.models import Category, ChangeOperation
from pg_differ.schema.ordering import ExecutionPlan, order_operations


def _op(category: Category, operation: str, sql: str) -> ChangeOperation:
    return ChangeOperation(category, operation, sql)


class TestOrderOperations:
    """Verify grouping, extension priority and de-duplication."""

    def test_categories_in_execution_order(self):
        plan = order_operations(
            [
                _op(Category.SEEDS, "insert seed", "insert 1;"),
                _op(Category.TABLES, "create table", "create table t;"),
                _op(Category.SEQUENCES, "create sequence", "create sequence s;"),
            ]
        )
        assert list(plan.statements) == [Category.SEQUENCES, Category.TABLES, Category.SEEDS]
        assert plan.flatten() == ["create sequence s;", "create table t;", "insert 1;"]

    def test_foreign_key_drop_before_unique_add(self):
        plan = order_operations(
            [
                _op(Category.EXTENSIONS, "add unique", "add unique;"),
                _op(Category.EXTENSIONS, "drop foreignKey", "drop fk;"),
            ]
        )
        assert plan.get(Category.EXTENSIONS) == ["drop fk;", "add unique;"]

    def test_priority_then_original_order(self):
        """Unlisted tags follow the prioritized ones, keeping their order."""
        plan = order_operations(
            [
                _op(Category.EXTENSIONS, "add index", "index a;"),
                _op(Category.EXTENSIONS, "add unique", "unique;"),
                _op(Category.EXTENSIONS, "update identity", "identity;"),
                _op(Category.EXTENSIONS, "drop primaryKey", "drop pk;"),
                _op(Category.EXTENSIONS, "add index", "index b;"),
                _op(Category.EXTENSIONS, "drop foreignKey", "drop fk;"),
            ]
        )
        assert plan.get(Category.EXTENSIONS) == [
            "drop fk;",
            "drop pk;",
            "unique;",
            "index a;",
            "identity;",
            "index b;",
        ]

    def test_other_categories_not_reordered(self):
        plan = order_operations(
            [
                _op(Category.TABLES, "add unique", "b;"),
                _op(Category.TABLES, "drop foreignKey", "a;"),
            ]
        )
        assert plan.get(Category.TABLES) == ["b;", "a;"]

    def test_duplicates_keep_first(self):
        plan = order_operations(
            [
                _op(Category.SEQUENCES, "create sequence", "create sequence s;"),
                _op(Category.SEQUENCES, "alter sequence", "alter sequence s;"),
                _op(Category.SEQUENCES, "create sequence", "create sequence s;"),
            ]
        )
        assert plan.get(Category.SEQUENCES) == ["create sequence s;", "alter sequence s;"]

    def test_empty_input(self):
        plan = order_operations([])
        assert plan.is_empty
        assert plan.statements == {}
        assert plan.flatten() == []


class TestExecutionPlan:
    """Verify plan accessors."""

    def test_get_returns_copy(self):
        plan = ExecutionPlan(statements={Category.TABLES: ["a;"]})
        plan.get(Category.TABLES).append("b;")
        assert plan.get(Category.TABLES) == ["a;"]

    def test_missing_category(self):
        assert ExecutionPlan().get(Category.SEEDS) == []

    def test_empty_lists_count_as_empty(self):
        assert ExecutionPlan(statements={Category.TABLES: []}).is_empty
