"""Transactional executor -- run an execution plan against the database.

Statements run one at a time on the client's single session, in category
order (Sequences, Tables, Extensions, Seeds, Sequence values), wrapped in
``begin``/``commit`` unless the caller disables it.  On any failure the
transaction is rolled back and the original error propagates.

Usage:
    from pg_differ.executor import execute_plan

    result = await execute_plan(client, plan)
    print(result.statements, result.inserted_seeds)
"""

import logging

from pydantic import BaseModel, Field

from pg_differ.adapters.base import DatabaseClient, QueryResult
from pg_differ.schema.models import CATEGORY_ORDER, Category
from pg_differ.schema.ordering import ExecutionPlan

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    """Result of running an execution plan.

    Attributes:
        statements: Executed statements, in execution order.
        inserted_seeds: Rows inserted by seed statements.
        changed: False when there was nothing to execute.
    """

    statements: list[str] = Field(default_factory=list)
    inserted_seeds: int = 0
    changed: bool = False


def count_inserted_rows(results: QueryResult | list[QueryResult]) -> int:
    """Total affected rows of executed seed inserts.

    A list is summed; a single result contributes its own count.

    Example:
        >>> count_inserted_rows([QueryResult(row_count=1), QueryResult(row_count=0)])
        1
    """
    if isinstance(results, list):
        return sum(result.row_count for result in results)
    return results.row_count


async def execute_plan(
    client: DatabaseClient,
    plan: ExecutionPlan,
    transaction: bool = True,
) -> SyncResult:
    """Execute *plan* sequentially on *client*.

    Args:
        client: Connected client.
        plan: Ordered statements from ``order_operations``.
        transaction: Wrap the run in ``begin``/``commit``.

    Returns:
        SyncResult with the executed statements and inserted seed count.

    Raises:
        Exception: The first failing statement's error, after rollback.
    """
    if plan.is_empty:
        logger.info("Database does not need updating")
        return SyncResult()

    result = SyncResult(changed=True)
    seed_results: list[QueryResult] = []

    if transaction:
        await client.query("begin;")
    try:
        for category in CATEGORY_ORDER:
            statements = plan.get(category)
            if not statements:
                continue
            logger.info(f"{category.value}:")
            for sql in statements:
                logger.info(f"  {sql}")
                query_result = await client.query(sql)
                result.statements.append(sql)
                if category == Category.SEEDS:
                    seed_results.append(query_result)
        if transaction:
            await client.query("commit;")
    except Exception:
        if transaction:
            logger.error("Sync failed, rolling back")
            try:
                await client.query("rollback;")
            except Exception as e:
                logger.error(f"Rollback failed: {e}")
        raise

    result.inserted_seeds = count_inserted_rows(seed_results)
    if seed_results:
        logger.info(f"Seeds inserted: {result.inserted_seeds}")
    return result
