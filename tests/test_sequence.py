"""Tests for the sequence differ."""

from pg_differ.adapters.base import QueryResult
from pg_differ.schema.models import (
    MAX_BIGINT,
    MIN_BIGINT,
    Category,
    SequenceDefinition,
    SequenceStructure,
    StructureSnapshot,
)
from pg_differ.schema.sequence import (
    build_range_check_sql,
    get_sequence_changes,
    get_sequence_diff,
    render_clauses,
)


def _live(**overrides) -> SequenceStructure:
    values = {"name": "public.counter", "start": 1, "min": 1, "max": MAX_BIGINT, "increment": 1, "cycle": False}
    values.update(overrides)
    return SequenceStructure(**values)


def _snapshot(structure: SequenceStructure | None = None) -> StructureSnapshot:
    if structure is None:
        return StructureSnapshot()
    return StructureSnapshot(sequences={structure.name: structure})


# ============================================================================
# Test: Clause rendering
# ============================================================================


class TestRenderClauses:
    """Verify clause rendering for set and cleared attributes."""

    def test_set_values(self):
        clauses = render_clauses({"start": 5, "min": 1, "max": 10, "increment": 2, "cycle": True, "current": 3})
        assert clauses == ["start 5", "minvalue 1", "maxvalue 10", "increment 2", "cycle", "restart with 3"]

    def test_cleared_values(self):
        clauses = render_clauses({"start": None, "min": None, "max": None, "increment": None, "cycle": False})
        assert clauses == ["no start", "no minvalue", "no maxvalue", "increment 1", "no cycle"]

    def test_current_none_skipped(self):
        assert render_clauses({"current": None}) == []

    def test_range_check_sql(self):
        assert build_range_check_sql("public.s", 1, 100) == (
            "select 1 <= last_value and last_value <= 100 as correct from public.s;"
        )
        assert build_range_check_sql("public.s", None, 100) == (
            "select last_value <= 100 as correct from public.s;"
        )


# ============================================================================
# Test: Diff
# ============================================================================


class TestSequenceDiff:
    """Verify attribute-level comparison."""

    def test_identical(self):
        sequence = SequenceDefinition(name="public.counter")
        assert get_sequence_diff(sequence, _live()) == {}

    def test_only_changed_attributes(self):
        sequence = SequenceDefinition(name="public.counter", increment=5)
        assert get_sequence_diff(sequence, _live()) == {"increment": 5}

    def test_cycle_change(self):
        sequence = SequenceDefinition(name="public.counter", cycle=True)
        assert get_sequence_diff(sequence, _live()) == {"cycle": True}

    def test_cleared_bounds_match_server_defaults(self):
        sequence = SequenceDefinition(name="public.counter", min=None, max=None)
        assert get_sequence_diff(sequence, _live()) == {}

    def test_cleared_bounds_descending(self):
        sequence = SequenceDefinition(name="public.countdown", start=-1, min=None, max=None, increment=-1)
        live = _live(name="public.countdown", start=-1, min=MIN_BIGINT, max=-1, increment=-1)
        assert get_sequence_diff(sequence, live) == {}

    def test_cleared_bound_differs_from_explicit(self):
        sequence = SequenceDefinition(name="public.counter", max=None)
        assert get_sequence_diff(sequence, _live(max=1000)) == {"max": None}


# ============================================================================
# Test: Change operations
# ============================================================================


class TestSequenceChanges:
    """Verify generated sequence statements."""

    async def test_missing_sequence_created(self, client):
        sequence = SequenceDefinition(name="public.counter")
        operations = await get_sequence_changes(client, sequence, _snapshot())
        assert [op.sql for op in operations] == [
            f"create sequence public.counter start 1 minvalue 1 maxvalue {MAX_BIGINT} increment 1 no cycle;"
        ]
        assert operations[0].category is Category.SEQUENCES
        assert operations[0].operation == "create sequence"

    async def test_forced_sequence_dropped_and_created(self, client):
        sequence = SequenceDefinition(name="public.counter", force=True)
        operations = await get_sequence_changes(client, sequence, _snapshot(_live()))
        assert [op.operation for op in operations] == ["drop sequence", "create sequence"]
        assert operations[0].sql == "drop sequence if exists public.counter cascade;"

    async def test_increment_only_is_one_clause(self, client):
        """A sequence differing only in increment alters exactly that clause."""
        sequence = SequenceDefinition(name="public.counter", increment=5)
        operations = await get_sequence_changes(client, sequence, _snapshot(_live()))
        assert [op.sql for op in operations] == ["alter sequence public.counter increment 5;"]
        assert client.executed == []

    async def test_unchanged_sequence_emits_nothing(self, client):
        sequence = SequenceDefinition(name="public.counter")
        assert await get_sequence_changes(client, sequence, _snapshot(_live())) == []
        assert client.executed == []

    async def test_bounds_change_in_range(self, client):
        client.on("as correct", QueryResult(rows=[{"correct": True}], row_count=1))
        sequence = SequenceDefinition(name="public.counter", max=1000)
        operations = await get_sequence_changes(client, sequence, _snapshot(_live()))
        assert client.executed == ["select 1 <= last_value and last_value <= 1000 as correct from public.counter;"]
        assert [op.sql for op in operations] == ["alter sequence public.counter maxvalue 1000;"]

    async def test_bounds_change_out_of_range_restarts(self, client):
        client.on("as correct", QueryResult(rows=[{"correct": False}], row_count=1))
        sequence = SequenceDefinition(name="public.counter", min=10, max=100, start=10)
        operations = await get_sequence_changes(client, sequence, _snapshot(_live()))
        assert [op.sql for op in operations] == [
            "alter sequence public.counter start 10 minvalue 10 maxvalue 100 restart with 10;"
        ]

    async def test_catalog_strings_compare_equal(self, client):
        """Numeric attributes read as strings still compare equal."""
        live = SequenceStructure(
            name="public.counter", start="1", min="1", max=str(MAX_BIGINT), increment="1", cycle=False
        )
        sequence = SequenceDefinition(name="public.counter")
        assert await get_sequence_changes(client, sequence, _snapshot(live)) == []
