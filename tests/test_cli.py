"""Tests for the pg-differ CLI.

Commands are invoked through ``main([...])`` with a temporary
differ.toml; the Differ is patched so no database is needed.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pg_differ.cli import build_parser, main
from pg_differ.config.models import SyncOptions
from pg_differ.executor import SyncResult
from pg_differ.schema.models import Category, ColumnStructure, TableStructure
from pg_differ.schema.ordering import ExecutionPlan


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "differ.toml"
    path.write_text(
        '[profiles.local]\nurl = "postgresql://localhost/app"\ndescription = "Local"\n\n'
        '[profiles.ci]\nurl = "postgresql://ci/app"\n'
    )
    return path


# ============================================================================
# Test: Parser
# ============================================================================


class TestParser:
    def test_global_options(self):
        args = build_parser().parse_args(["--profile", "local", "--env-prefix", "APP_", "profiles"])
        assert args.profile == "local"
        assert args.env_prefix == "APP_"

    def test_sync_options(self):
        args = build_parser().parse_args(["sync", "--schemas", "./schemas", "--no-transaction"])
        assert args.schemas == "./schemas"
        assert args.no_transaction is True

    def test_read_kind_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["read", "view", "users"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ============================================================================
# Test: Commands
# ============================================================================


class TestProfilesCommand:
    def test_lists_profiles(self, config_file, capsys):
        assert main(["--config", str(config_file), "--profile", "local", "profiles"]) == 0
        output = capsys.readouterr().out
        assert "local" in output
        assert "ci" in output

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.toml"), "profiles"]) == 1


class TestSyncCommand:
    """Verify sync wiring with a patched Differ."""

    def test_success(self, config_file):
        differ = MagicMock()
        differ.sync = AsyncMock(return_value=SyncResult(statements=["create table t;"], changed=True))
        with patch("pg_differ.cli.Differ", return_value=differ):
            assert main(["--config", str(config_file), "--profile", "local", "sync"]) == 0
        differ.sync.assert_awaited_once_with(SyncOptions(transaction=True))

    def test_no_transaction(self, config_file):
        differ = MagicMock()
        differ.sync = AsyncMock(return_value=SyncResult())
        with patch("pg_differ.cli.Differ", return_value=differ):
            main(["--config", str(config_file), "--profile", "local", "sync", "--no-transaction"])
        differ.sync.assert_awaited_once_with(SyncOptions(transaction=False))

    def test_schemas_override(self, config_file, tmp_path):
        differ = MagicMock()
        differ.sync = AsyncMock(return_value=SyncResult())
        with patch("pg_differ.cli.Differ", return_value=differ) as mock_cls:
            main(["--config", str(config_file), "--profile", "local", "sync", "--schemas", str(tmp_path)])
        assert mock_cls.call_args.kwargs["config"].schema_folder == str(tmp_path)

    def test_failure_returns_one(self, config_file):
        differ = MagicMock()
        differ.sync = AsyncMock(side_effect=RuntimeError("relation exists"))
        with patch("pg_differ.cli.Differ", return_value=differ):
            assert main(["--config", str(config_file), "--profile", "local", "sync"]) == 1

    def test_unknown_profile(self, config_file):
        assert main(["--config", str(config_file), "--profile", "prod", "sync"]) == 1


class TestPlanCommand:
    def test_prints_plan(self, config_file, capsys):
        differ = MagicMock()
        differ.client.connect = AsyncMock()
        differ.client.end = AsyncMock()
        differ.config.reconnection = None
        differ.plan = AsyncMock(
            return_value=ExecutionPlan(statements={Category.TABLES: ["create table public.t (id integer);"]})
        )
        with patch("pg_differ.cli.Differ", return_value=differ):
            assert main(["--config", str(config_file), "--profile", "local", "plan"]) == 0
        assert "Planned Changes" in capsys.readouterr().out
        differ.client.end.assert_awaited_once()


class TestReadCommand:
    def test_existing_table(self, config_file, capsys):
        differ = MagicMock()
        differ.read = AsyncMock(
            return_value=TableStructure(name="public.t", columns=[ColumnStructure(name="id", type="integer")])
        )
        with patch("pg_differ.cli.Differ", return_value=differ):
            assert main(["--config", str(config_file), "--profile", "local", "read", "table", "t"]) == 0
        differ.read.assert_awaited_once_with("table", "t")
        assert "public.t" in capsys.readouterr().out

    def test_missing_table(self, config_file):
        differ = MagicMock()
        differ.read = AsyncMock(return_value=None)
        with patch("pg_differ.cli.Differ", return_value=differ):
            assert main(["--config", str(config_file), "--profile", "local", "read", "table", "t"]) == 1
