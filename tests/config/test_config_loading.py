"""Tests for configuration loading from files."""

from pathlib import Path

import pytest

from forestkeeper.config import CleanupConfig


class TestConfigLoading:
    """Tests for loading configuration from .env files."""

    def test_load_from_env_forestkeeper(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading config from .env.forestkeeper file."""
        monkeypatch.chdir(tmp_path)

        env_file = tmp_path / ".env.forestkeeper"
        env_file.write_text(
            """
FORESTKEEPER_SAFE_BRANCHES=develop,main
FORESTKEEPER_PROTECTED_BRANCHES=staging
FORESTKEEPER_MAX_WORKERS=2
"""
        )

        config = CleanupConfig()

        assert config.safe_branches == {"develop", "main"}
        assert config.protected_branches == {"staging"}
        assert config.max_workers == 2

    def test_load_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading config from .env file."""
        monkeypatch.chdir(tmp_path)

        (tmp_path / ".env").write_text("FORESTKEEPER_CLEANUP_LOCAL=false\n")

        config = CleanupConfig()

        assert config.cleanup_local is False
        assert config.cleanup_remote is True

    def test_load_from_environment_variables(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading config from environment variables."""
        monkeypatch.chdir(tmp_path)

        monkeypatch.setenv("FORESTKEEPER_SAFE_BRANCHES", "main")
        monkeypatch.setenv("FORESTKEEPER_PROTECTED_PATTERNS", '["^hotfix/"]')

        config = CleanupConfig()

        assert config.safe_branches == {"main"}
        assert config.protected_patterns == ["^hotfix/"]

    def test_acknowledge_through_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the risks can be acknowledged through the environment."""
        monkeypatch.chdir(tmp_path)

        monkeypatch.setenv("FORESTKEEPER_I_UNDERSTAND_THE_RISKS", "true")

        assert CleanupConfig().acknowledged is True

    def test_environment_variables_override_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment variables override .env files."""
        monkeypatch.chdir(tmp_path)

        (tmp_path / ".env.forestkeeper").write_text(
            """
FORESTKEEPER_SAFE_BRANCHES=develop
FORESTKEEPER_MAX_WORKERS=3
"""
        )
        monkeypatch.setenv("FORESTKEEPER_SAFE_BRANCHES", "main")

        config = CleanupConfig()

        assert config.safe_branches == {"main"}
        # This should still come from file
        assert config.max_workers == 3

    def test_custom_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a custom env file replaces the default ones."""
        monkeypatch.chdir(tmp_path)

        (tmp_path / ".env").write_text("FORESTKEEPER_MAX_WORKERS=3\n")
        custom = tmp_path / "cleanup.env"
        custom.write_text("FORESTKEEPER_SAFE_BRANCHES=trunk\n")

        config = CleanupConfig(env_file=custom)

        assert config.safe_branches == {"trunk"}
        assert config.max_workers == 8

    def test_init_arguments_override_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test explicit arguments win over the environment."""
        monkeypatch.chdir(tmp_path)

        monkeypatch.setenv("FORESTKEEPER_SAFE_BRANCHES", "main")

        config = CleanupConfig(safe_branches={"develop"})

        assert config.safe_branches == {"develop"}

    def test_case_insensitive_env_vars(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment variable names are case insensitive."""
        monkeypatch.chdir(tmp_path)

        monkeypatch.setenv("forestkeeper_cleanup_remote", "false")

        assert CleanupConfig().cleanup_remote is False
