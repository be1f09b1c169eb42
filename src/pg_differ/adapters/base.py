"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol the differ talks to.  All methods
are ``async def``.  A client holds one session: diff-phase reads and
execution-phase writes run on it, and ``begin``/``commit``/``rollback``
are sent as plain statements.

Usage:
    from pg_differ.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        await client.connect()
        result = await client.query("select version();")
        print(result.rows[0]["version"])
        await client.end()
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class QueryResult:
    """Rows and affected-row count of one statement.

    Example:
        result = QueryResult(rows=[{"correct": True}], row_count=1)
    """

    rows: list[dict] = field(default_factory=list)
    row_count: int = 0


class DatabaseClient(Protocol):
    """Connection provider interface.

    All methods are async -- callers must ``await`` every operation.
    """

    async def connect(self) -> None:
        """Open the session.  Called once before any query."""
        ...

    async def query(self, sql: str) -> QueryResult:
        """Run one SQL statement on the session.

        Args:
            sql: Literal SQL text (no bind parameters).

        Returns:
            QueryResult with the returned rows (empty for statements that
            return none) and the affected-row count.

        Raises:
            Exception: The driver error, unmodified.
        """
        ...

    async def end(self) -> None:
        """Close the session and release its resources."""
        ...
