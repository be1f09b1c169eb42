"""Tests for the transactional executor."""

import pytest

from pg_differ.adapters.base import QueryResult
from pg_differ.executor import SyncResult, count_inserted_rows, execute_plan
from pg_differ.schema.models import Category
from pg_differ.schema.ordering import ExecutionPlan


def _plan() -> ExecutionPlan:
    return ExecutionPlan(
        statements={
            Category.TABLES: ["create table public.t (id integer);"],
            Category.EXTENSIONS: ["alter table public.t add primary key (id);"],
            Category.SEEDS: [
                "insert into public.t (id) values (1) on conflict do nothing;",
                "insert into public.t (id) values (2) on conflict do nothing;",
            ],
        }
    )


# ============================================================================
# Test: Row counting
# ============================================================================


class TestCountInsertedRows:
    def test_list_is_summed(self):
        assert count_inserted_rows([QueryResult(row_count=1), QueryResult(row_count=0)]) == 1

    def test_single_result(self):
        assert count_inserted_rows(QueryResult(row_count=3)) == 3

    def test_empty_list(self):
        assert count_inserted_rows([]) == 0


# ============================================================================
# Test: Execution
# ============================================================================


class TestExecutePlan:
    """Verify statement order, transactions and rollback."""

    async def test_empty_plan_runs_nothing(self, client):
        result = await execute_plan(client, ExecutionPlan())
        assert result == SyncResult()
        assert result.changed is False
        assert client.executed == []

    async def test_wrapped_in_transaction(self, client):
        plan = _plan()
        result = await execute_plan(client, plan)

        assert client.executed == ["begin;", *plan.flatten(), "commit;"]
        assert client.committed == plan.flatten()
        assert result.statements == plan.flatten()
        assert result.changed is True

    async def test_without_transaction(self, client):
        plan = _plan()
        await execute_plan(client, plan, transaction=False)
        assert client.executed == plan.flatten()

    async def test_seed_counts(self, client):
        """Seed inserts that hit a conflict add nothing to the count."""
        client.on("values (2)", QueryResult(row_count=0))
        result = await execute_plan(client, _plan())
        assert result.inserted_seeds == 1

    async def test_failure_rolls_back_and_reraises(self, client):
        plan = ExecutionPlan(statements={Category.TABLES: ["s1;", "s2;", "s3;"]})
        client.fail_on = "s2;"

        with pytest.raises(RuntimeError) as exc:
            await execute_plan(client, plan)

        assert exc.value is client.error
        assert client.executed == ["begin;", "s1;", "s2;", "rollback;"]
        assert client.committed == []

    async def test_failed_rollback_keeps_original_error(self, client, caplog):
        plan = ExecutionPlan(statements={Category.TABLES: ["s1;", "s2;"]})
        client.fail_on = "s2;"
        query = client.query

        async def lose_connection_on_rollback(sql):
            if sql == "rollback;":
                raise ConnectionError("connection lost")
            return await query(sql)

        client.query = lose_connection_on_rollback

        with pytest.raises(RuntimeError) as exc:
            await execute_plan(client, plan)

        assert exc.value is client.error
        assert "Rollback failed: connection lost" in caplog.text

    async def test_failure_without_transaction_skips_rollback(self, client):
        plan = ExecutionPlan(statements={Category.TABLES: ["s1;", "s2;", "s3;"]})
        client.fail_on = "s2;"

        with pytest.raises(RuntimeError):
            await execute_plan(client, plan, transaction=False)

        assert client.executed == ["s1;", "s2;"]
