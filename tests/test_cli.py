"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import git
import pytest
from pytest_mock import MockerFixture
from typer.testing import CliRunner

from forestkeeper import __version__
from forestkeeper.cleanup import CleanupReport
from forestkeeper.cli import app
from forestkeeper.config import CleanupConfig

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every command away from any .env file of the caller."""
    monkeypatch.chdir(tmp_path)


class TestCleanupCommand:
    """Tests for cleanup command."""

    @patch("forestkeeper.cli.BranchCleanupEngine")
    @patch("forestkeeper.cli.WorkspaceModel")
    def test_cleanup_with_options(self, mock_model_class: MagicMock, mock_engine_class: MagicMock) -> None:
        """Test options are turned into configuration."""
        mock_model = MagicMock()
        mock_model_class.from_path.return_value = mock_model

        mock_engine = MagicMock()
        mock_engine.run = AsyncMock(
            return_value=CleanupReport(
                acknowledged=True,
                remote_candidates=["a origin/feature/x"],
                remote_deleted=["a origin/feature/x"],
                local_deleted=["a feature/x"],
            )
        )
        mock_engine_class.return_value = mock_engine

        result = runner.invoke(
            app,
            [
                "cleanup",
                "forest",
                "-s",
                "main",
                "-s",
                "develop",
                "-P",
                "staging",
                "-p",
                "^hotfix/",
                "--i-understand-the-risks",
                "--no-local",
            ],
        )

        assert result.exit_code == 0
        config = mock_engine_class.call_args.args[0]
        assert isinstance(config, CleanupConfig)
        assert config.safe_branches == {"main", "develop"}
        assert config.protected_branches == {"staging"}
        assert config.protected_patterns == ["^hotfix/"]
        assert config.acknowledged is True
        assert config.cleanup_local is False
        assert config.cleanup_remote is True
        assert mock_engine_class.call_args.args[1] is mock_model
        assert mock_engine_class.call_args.args[2] is None
        assert "Remote branches deleted: 1" in result.stdout
        assert "a origin/feature/x" in result.stdout

    @patch("forestkeeper.cli.BranchCleanupEngine")
    @patch("forestkeeper.cli.WorkspaceModel")
    def test_cleanup_pretend_mode(self, mock_model_class: MagicMock, mock_engine_class: MagicMock) -> None:
        """Test an unacknowledged run shows what would be deleted."""
        mock_model_class.from_path.return_value = MagicMock()
        mock_engine = MagicMock()
        mock_engine.run = AsyncMock(
            return_value=CleanupReport(
                acknowledged=False,
                remote_candidates=["a origin/feature/x"],
                local_candidates=["a tmp-123"],
            )
        )
        mock_engine_class.return_value = mock_engine

        result = runner.invoke(app, ["cleanup"])

        assert result.exit_code == 0
        assert mock_engine_class.call_args.args[0].acknowledged is False
        assert "Pretend mode" in result.stdout
        assert "a tmp-123" in result.stdout

    @patch("forestkeeper.cli.BranchCleanupEngine")
    @patch("forestkeeper.cli.WorkspaceModel")
    def test_cleanup_shows_warnings_and_failures(
        self, mock_model_class: MagicMock, mock_engine_class: MagicMock
    ) -> None:
        """Test per-branch problems are listed without failing the run."""
        mock_model_class.from_path.return_value = MagicMock()
        mock_engine = MagicMock()
        mock_engine.run = AsyncMock(
            return_value=CleanupReport(
                acknowledged=True,
                remote_candidates=["a origin/feature/x"],
                warnings=["Not deleting local branch feature/x"],
                failures=["Delete a origin/feature/x: rejected"],
            )
        )
        mock_engine_class.return_value = mock_engine

        result = runner.invoke(app, ["cleanup", "--i-understand-the-risks"])

        assert result.exit_code == 0
        assert "Not deleting local branch feature/x" in result.stdout
        assert "rejected" in result.stdout

    @patch("forestkeeper.cli.WorkspaceModel")
    def test_cleanup_not_a_repository(self, mock_model_class: MagicMock) -> None:
        """Test running outside git fails."""
        mock_model_class.from_path.return_value = None

        result = runner.invoke(app, ["cleanup"])

        assert result.exit_code == 1
        assert "Not inside a Git repository" in result.stdout

    def test_cleanup_invalid_branch_name(self) -> None:
        """Test configuration errors fail before anything runs."""
        result = runner.invoke(app, ["cleanup", "-s", "bad..name"])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout

    def test_cleanup_scope_selects_checkouts(self, forest_repos: dict[str, git.Repo], mocker: MockerFixture) -> None:
        """Test a scope limits cleanup to the matching checkouts."""
        root = Path(forest_repos["forest"].working_tree_dir or "")
        mock_engine_class = mocker.patch("forestkeeper.cli.BranchCleanupEngine")
        mock_engine_class.return_value.run = mocker.AsyncMock(return_value=CleanupReport(acknowledged=False))

        result = runner.invoke(app, ["cleanup", str(root / "kivakit"), "--scope", "family-or-child-family"])

        assert result.exit_code == 0
        selected = mock_engine_class.call_args.args[2]
        assert [checkout.path for checkout in selected] == [
            (root / "kivakit").resolve(),
            (root / "kivakit-extensions").resolve(),
        ]

    def test_cleanup_invalid_scope(self) -> None:
        """Test unknown scopes are rejected before anything runs."""
        result = runner.invoke(app, ["cleanup", "--scope", "everything"])

        assert result.exit_code == 1
        assert "Invalid scope" in result.stdout

    def test_cleanup_unexpected_error(self, mocker: MockerFixture) -> None:
        """Test unexpected errors exit with a failure."""
        mocker.patch("forestkeeper.cli.WorkspaceModel")
        mock_engine_class = mocker.patch("forestkeeper.cli.BranchCleanupEngine")
        mock_engine_class.return_value.run = mocker.AsyncMock(side_effect=RuntimeError("disk on fire"))

        result = runner.invoke(app, ["cleanup"])

        assert result.exit_code == 1
        assert "disk on fire" in result.stdout


class TestCheckoutsCommand:
    """Tests for checkouts command."""

    def test_lists_forest(self, forest_repos: dict[str, git.Repo]) -> None:
        """Test listing every checkout of a real forest."""
        root = forest_repos["forest"].working_tree_dir or ""

        result = runner.invoke(app, ["checkouts", root])

        assert result.exit_code == 0
        assert "kivakit-extensions" in result.stdout
        assert "develop" in result.stdout

    def test_family_scope_from_module(self, forest_repos: dict[str, git.Repo]) -> None:
        """Test the family defaults to that of the module at the path."""
        root = Path(forest_repos["forest"].working_tree_dir or "")

        result = runner.invoke(app, ["checkouts", str(root / "kivakit"), "--scope", "family-or-child-family"])

        assert result.exit_code == 0
        assert "kivakit-extensions" in result.stdout

    def test_invalid_scope(self) -> None:
        """Test unknown scopes are rejected."""
        result = runner.invoke(app, ["checkouts", "--scope", "everything"])

        assert result.exit_code == 1
        assert "Invalid scope" in result.stdout

    def test_not_a_repository(self, tmp_path: Path) -> None:
        """Test listing outside git fails."""
        result = runner.invoke(app, ["checkouts", str(tmp_path)])

        assert result.exit_code == 1
        assert "Not inside a Git repository" in result.stdout

    def test_missing_group_id(self, forest_repos: dict[str, git.Repo]) -> None:
        """Test a scope needing a group id fails when none can be found."""
        root = forest_repos["forest"].working_tree_dir or ""

        result = runner.invoke(app, ["checkouts", root, "--scope", "same-group-id"])

        assert result.exit_code == 1
        assert "needs a family or group id" in result.stdout


class TestConfigCommand:
    """Tests for config command."""

    def test_config_display(self, tmp_path: Path) -> None:
        """Test showing the effective configuration."""
        (tmp_path / ".env.forestkeeper").write_text("FORESTKEEPER_SAFE_BRANCHES=main\n")

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "Safe Branches: main" in result.stdout
        assert "release/current" in result.stdout

    def test_config_missing_env_file(self) -> None:
        """Test a missing custom env file is a configuration error."""
        result = runner.invoke(app, ["config", "--env-file", "missing.env"])

        assert result.exit_code == 1
        assert "Environment file not found" in result.stdout


class TestVersionCommand:
    """Tests for version command."""

    def test_version_display(self) -> None:
        """Test version command."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout
