"""Exceptions raised while loading or validating cleanup configuration."""


class ConfigurationError(Exception):
    """Base exception for cleanup configuration errors."""


class MissingConfigurationError(ConfigurationError):
    """A required setting is empty, such as the set of safe branches."""


class InvalidConfigurationError(ConfigurationError):
    """A setting is malformed.

    Raised for branch names git would reject, protected patterns that are not
    valid regular expressions, a worker count below one, and an env file that
    does not exist.
    """
