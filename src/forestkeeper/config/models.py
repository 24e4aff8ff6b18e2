"""Configuration models."""

import re
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from forestkeeper.config.exceptions import InvalidConfigurationError, MissingConfigurationError

# Branches that are never deleted, whatever the configuration says
ALWAYS_PROTECTED = frozenset({"master", "develop", "stable", "release/current"})

# Any branch whose name starts with this is protected too
RELEASE_PREFIX = "release"

DEFAULT_SAFE_BRANCHES = frozenset({"develop", "release/current"})

ENV_FILES = [".env.forestkeeper", ".env"]

_INVALID_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


def validate_branch_name(name: str) -> str:
    """Check a branch name against git's ref-format rules.

    Args:
        name: Branch name to check

    Returns:
        The name, unchanged

    Raises:
        InvalidConfigurationError: If git would reject the name
    """
    problem = None
    if not name:
        problem = "it is empty"
    elif name == "@":
        problem = "'@' is not a valid branch name"
    elif name.startswith(("-", "/")):
        problem = "it starts with '-' or '/'"
    elif name.endswith(("/", ".", ".lock")):
        problem = "it ends with '/', '.' or '.lock'"
    elif ".." in name or "//" in name or "@{" in name:
        problem = "it contains '..', '//' or '@{'"
    elif _INVALID_REF_CHARS.search(name):
        problem = "it contains whitespace, control characters or one of ~^:?*[\\"
    elif any(part.startswith(".") for part in name.split("/")):
        problem = "a path component starts with '.'"

    if problem is not None:
        raise InvalidConfigurationError(f"Invalid branch name '{name}': {problem}")
    return name


def _split_names(v: Any) -> Any:
    if isinstance(v, str):
        return {part.strip() for part in v.split(",") if part.strip()}
    return v


class CleanupConfig(BaseSettings):
    """Configuration for branch cleanup."""

    safe_branches: Annotated[set[str], NoDecode] = Field(
        default_factory=lambda: set(DEFAULT_SAFE_BRANCHES),
        description="Branches work is merged into; containment in one proves a branch obsolete",
    )
    protected_branches: Annotated[set[str], NoDecode] = Field(
        default_factory=set,
        description="Branches never to delete, in addition to the always-protected ones",
    )
    protected_patterns: list[str] = Field(
        default_factory=list,
        description="Regular expressions; a branch matching any of them is never deleted",
    )
    acknowledged: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "acknowledged",
            "forestkeeper_acknowledged",
            "forestkeeper_i_understand_the_risks",
        ),
        description="Really delete branches; without it the run only reports what it would do",
    )
    cleanup_remote: bool = Field(default=True, description="Delete merged remote branches")
    cleanup_local: bool = Field(default=True, description="Delete merged local-only branches")
    max_workers: int = Field(default=8, description="Parallelism for scanning and deletion")

    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        env_prefix="FORESTKEEPER_",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(
        self,
        _env_file: str | Path | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize configuration.

        Args:
            _env_file: Optional path to custom env file (use env_file for public API)
            **kwargs: Additional configuration values

        Raises:
            InvalidConfigurationError: If an env file is specified but does not exist
        """
        env_file = kwargs.pop("env_file", _env_file)

        if env_file is not None:
            env_path = Path(env_file)
            if not env_path.exists():
                raise InvalidConfigurationError(f"Environment file not found: {env_file}")
            kwargs["_custom_env_file"] = env_path

        super().__init__(**kwargs)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use a custom env file in place of the default ones when one was given.

        Args:
            settings_cls: The settings class being instantiated
            init_settings: Settings from __init__ arguments
            env_settings: Settings from environment variables
            dotenv_settings: Settings from .env files
            file_secret_settings: Settings from secret files

        Returns:
            Tuple of settings sources in priority order
        """
        init_kwargs = init_settings.init_kwargs  # type: ignore[attr-defined]
        custom_env_path = init_kwargs.get("_custom_env_file")

        if custom_env_path is not None:
            custom_dotenv = DotEnvSettingsSource(
                settings_cls,
                env_file=custom_env_path,
                env_file_encoding="utf-8",
            )
            return (init_settings, custom_dotenv, env_settings, file_secret_settings)

        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @field_validator("safe_branches", "protected_branches", mode="before")
    @classmethod
    def parse_branch_list(cls, v: Any) -> Any:
        """Accept comma-delimited strings as well as collections.

        Args:
            v: Raw value

        Returns:
            Set of stripped, non-empty names
        """
        v = _split_names(v)
        if isinstance(v, list | tuple | set | frozenset):
            return {str(name).strip() for name in v if str(name).strip()}
        return v

    @field_validator("safe_branches")
    @classmethod
    def validate_safe_branches(cls, v: set[str]) -> set[str]:
        """Refuse an empty safe set and malformed names.

        Raises:
            MissingConfigurationError: If no safe branch is given
            InvalidConfigurationError: If a name is invalid
        """
        if not v:
            raise MissingConfigurationError("No safe branches given - will not delete all remote branches")
        for name in v:
            validate_branch_name(name)
        return v

    @field_validator("protected_branches")
    @classmethod
    def validate_protected_branches(cls, v: set[str]) -> set[str]:
        for name in v:
            validate_branch_name(name)
        return v

    @field_validator("protected_patterns", mode="before")
    @classmethod
    def validate_patterns(cls, v: Any) -> Any:
        """Drop blank patterns and make sure the rest compile.

        Raises:
            InvalidConfigurationError: If a pattern is not a valid regular expression
        """
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list | tuple | set):
            return v
        patterns = [str(p) for p in v if str(p).strip()]
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise InvalidConfigurationError(f"Invalid regular expression '{pattern}': {e}") from e
        return patterns

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise InvalidConfigurationError(f"max_workers must be at least 1, got {v}")
        return v

    @property
    def all_protected_branches(self) -> set[str]:
        """Get the always-protected branches plus the configured ones."""
        return set(ALWAYS_PROTECTED) | self.protected_branches

    def is_safe(self, name: str) -> bool:
        """Check whether a branch name is one of the safe branches."""
        return name in self.safe_branches

    def is_protected(self, name: str) -> bool:
        """Check whether a branch must never be deleted.

        Args:
            name: Bare branch name

        Returns:
            True for always-protected, release, configured or pattern-matched branches
        """
        return self.protected_filter()(name)

    def protected_filter(self) -> Callable[[str], bool]:
        """Get a predicate that is true for protected branch names."""
        compiled = [re.compile(p) for p in self.protected_patterns]
        protected = self.all_protected_branches

        def _is_protected(name: str) -> bool:
            if name.startswith(RELEASE_PREFIX) or name in protected:
                return True
            return any(p.search(name) for p in compiled)

        return _is_protected

    @staticmethod
    def find_env_file() -> Path | None:
        """Find the environment file being used.

        Checks for .env.forestkeeper and .env in the current directory in that order.

        Returns:
            Path to the env file if found, None otherwise
        """
        for env_file in ENV_FILES:
            path = Path(env_file)
            if path.exists():
                return path.absolute()
        return None
