"""Shared fixtures: a scripted database client and a static structure reader."""

from collections.abc import Callable

import pytest

from pg_differ.adapters.base import QueryResult
from pg_differ.schema.models import StructureSnapshot


class FakeClient:
    """In-memory ``DatabaseClient`` that records every statement.

    ``responses`` maps an SQL fragment to a ``QueryResult`` (or a callable
    taking the SQL); the first matching fragment answers the query.
    Statements run between ``begin`` and ``commit`` only reach
    ``committed`` on commit; ``rollback`` discards them.
    """

    def __init__(self, version: str = "PostgreSQL 14.5 on x86_64-pc-linux-gnu") -> None:
        self.version = version
        self.responses: list[tuple[str, QueryResult | Callable[[str], QueryResult]]] = []
        self.executed: list[str] = []
        self.committed: list[str] = []
        self.pending: list[str] | None = None
        self.fail_on: str | None = None
        self.error = RuntimeError("statement failed")
        self.connect_errors: list[Exception] = []
        self.connect_calls = 0
        self.end_calls = 0
        self.connected = False

    def on(self, fragment: str, result: QueryResult | Callable[[str], QueryResult]) -> None:
        self.responses.append((fragment, result))

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        self.connected = True

    async def query(self, sql: str) -> QueryResult:
        self.executed.append(sql)
        if self.fail_on is not None and self.fail_on in sql:
            raise self.error

        if sql == "begin;":
            self.pending = []
            return QueryResult()
        if sql == "commit;":
            self.committed.extend(self.pending or [])
            self.pending = None
            return QueryResult()
        if sql == "rollback;":
            self.pending = None
            return QueryResult()
        if sql.startswith("select version()"):
            return QueryResult(rows=[{"version": self.version}], row_count=1)

        if self.pending is not None:
            self.pending.append(sql)
        else:
            self.committed.append(sql)

        for fragment, result in self.responses:
            if fragment in sql:
                return result(sql) if callable(result) else result
        return QueryResult(row_count=1 if sql.startswith("insert") else 0)

    async def end(self) -> None:
        self.end_calls += 1
        self.connected = False

    @property
    def statements(self) -> list[str]:
        """Executed statements other than version and transaction control."""
        control = {"begin;", "commit;", "rollback;"}
        return [s for s in self.executed if s not in control and not s.startswith("select version()")]


class StaticReader:
    """``StructureReader`` returning a fixed snapshot."""

    def __init__(self, snapshot: StructureSnapshot | None = None) -> None:
        self.snapshot = snapshot or StructureSnapshot()
        self.calls: list[tuple[list[str], list[str]]] = []

    async def read(self, client, tables, sequences) -> StructureSnapshot:
        self.calls.append((list(tables), list(sequences)))
        return self.snapshot


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_reader() -> Callable[..., StaticReader]:
    return StaticReader
