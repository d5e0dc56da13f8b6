"""Tests for the repowatch command line."""

import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from api.config import get_settings
from core.cli import Runtime, main
from core.indexing.models import RepositoryFailure, SweepReport
from core.indexing.monitor import RepositoryNotFoundError
from core.storage.models import Repository


@pytest.fixture
def env(tmp_path: Path) -> Iterator[dict[str, str]]:
    """Point the CLI at a throwaway database with seeding disabled."""
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}",
        "SEED_ORG": "",
    }
    get_settings.cache_clear()
    with patch.dict(os.environ, values, clear=False):
        yield values
    get_settings.cache_clear()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCli:
    """Tests for the click commands."""

    def test_init_db(self, runner: CliRunner, env: dict[str, str], tmp_path: Path):
        """Test init-db creates the schema file."""
        result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "Database schema ready" in result.output
        assert (tmp_path / "cli.db").exists()

    def test_register(self, runner: CliRunner, env: dict[str, str]):
        """Test register reports the tracked repository."""
        monitor = AsyncMock()
        monitor.register_repository.return_value = Repository(id=1, org_name="acme", repo_name="widgets")

        with patch.object(Runtime, "monitor", return_value=monitor):
            result = runner.invoke(main, ["register", "acme", "widgets"])

        assert result.exit_code == 0, result.output
        assert "Registered acme/widgets" in result.output
        monitor.register_repository.assert_awaited_once_with("acme", "widgets")

    def test_register_unknown_repository(self, runner: CliRunner, env: dict[str, str]):
        """Test a repository GitHub does not know fails the command."""
        monitor = AsyncMock()
        monitor.register_repository.side_effect = RepositoryNotFoundError("acme", "ghost")

        with patch.object(Runtime, "monitor", return_value=monitor):
            result = runner.invoke(main, ["register", "acme", "ghost"])

        assert result.exit_code == 1
        assert "Repository acme/ghost does not exist" in result.output

    def test_sweep_prints_report(self, runner: CliRunner, env: dict[str, str]):
        """Test sweep summarises the report and lists failures."""
        monitor = AsyncMock()
        monitor.sweep.return_value = SweepReport(
            repositories=2,
            succeeded=1,
            failures=[
                RepositoryFailure(org_name="acme", repo_name="gadgets", error_type="TimeoutError", message="timed out")
            ],
            duration_ms=12,
        )

        with patch.object(Runtime, "monitor", return_value=monitor):
            result = runner.invoke(main, ["sweep"])

        assert result.exit_code == 0, result.output
        assert "Swept 2 repositories: 1 succeeded, 1 failed" in result.output
        assert "acme/gadgets: timed out" in result.output
