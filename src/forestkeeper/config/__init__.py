"""Configuration management for forestkeeper."""

from forestkeeper.config.exceptions import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from forestkeeper.config.models import (
    ALWAYS_PROTECTED,
    RELEASE_PREFIX,
    CleanupConfig,
    validate_branch_name,
)

__all__ = [
    "ALWAYS_PROTECTED",
    "RELEASE_PREFIX",
    "CleanupConfig",
    "ConfigurationError",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "validate_branch_name",
]
