"""Scopes that select which checkouts an operation applies to."""

from enum import Enum


class Scope(Enum):
    """Which checkouts, relative to the calling one, an operation covers."""

    JUST_THIS = "just-this"
    FAMILY = "family"
    FAMILY_OR_CHILD_FAMILY = "family-or-child-family"
    SAME_GROUP_ID = "same-group-id"
    ALL_PROJECT_FAMILIES = "all-project-families"
    ALL = "all"

    @property
    def display_name(self) -> str:
        """Get display name for the scope.

        Returns:
            Human-readable description
        """
        return {
            Scope.JUST_THIS: "This checkout only",
            Scope.FAMILY: "Same project family",
            Scope.FAMILY_OR_CHILD_FAMILY: "Same or child project family",
            Scope.SAME_GROUP_ID: "Same group id",
            Scope.ALL_PROJECT_FAMILIES: "All checkouts containing modules",
            Scope.ALL: "All checkouts",
        }[self]

    @classmethod
    def parse(cls, value: "str | Scope") -> "Scope":
        """Parse a scope from its value or name, ignoring case and '-'/'_'.

        Args:
            value: e.g. 'family', 'SAME_GROUP_ID' or 'same-group-id'

        Returns:
            The scope

        Raises:
            ValueError: If no scope matches
        """
        if isinstance(value, Scope):
            return value
        normalized = value.strip().lower().replace("_", "-")
        for scope in cls:
            if scope.value == normalized:
                return scope
        valid = [s.value for s in cls]
        raise ValueError(f"Invalid scope: {value}. Valid options: {valid}")
