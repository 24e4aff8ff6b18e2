"""Models for build modules and project families."""

from functools import total_ordering
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Module(BaseModel):
    """A buildable unit described by a descriptor file (pom.xml)."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(description="Group the module belongs to")
    artifact_id: str = Field(description="Module name within its group")
    version: str = Field(description="Declared or inherited version")
    path: Path = Field(description="Path to the descriptor file")

    @property
    def coordinates(self) -> str:
        """Get 'groupId:artifactId'."""
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def folder(self) -> Path:
        """Get the folder containing the descriptor."""
        return self.path.parent

    @property
    def family(self) -> "ProjectFamily":
        """Get the family derived from the group id."""
        return ProjectFamily.from_group_id(self.group_id)

    def _sort_key(self) -> tuple[str, str, str]:
        return (self.group_id, self.artifact_id, str(self.path))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Module):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        return f"{self.coordinates}:{self.version}"


class ProjectFamily(BaseModel):
    """A grouping of modules derived from their group id.

    The family of 'com.example.kivakit' is 'kivakit'. A family is the parent of a
    group id in which its name appears as an inner segment, so 'kivakit' is the
    parent family of 'com.example.kivakit.extensions'.
    """

    model_config = ConfigDict(frozen=True)

    name: str

    @classmethod
    def from_group_id(cls, group_id: str) -> "ProjectFamily":
        """Derive the family of a group id.

        Args:
            group_id: Dotted group id

        Returns:
            Family named after the last non-empty segment
        """
        segments = [s for s in group_id.split(".") if s]
        return cls(name=segments[-1] if segments else group_id)

    @classmethod
    def named(cls, name: str) -> "ProjectFamily":
        return cls(name=name)

    def is_parent_family_of(self, group_id: str) -> bool:
        """Check whether a group id belongs to a child family of this one.

        Args:
            group_id: Dotted group id

        Returns:
            True if this family's name is an inner segment of the group id
        """
        segments = [s for s in group_id.split(".") if s]
        return self.name in segments[1:-1]

    def __str__(self) -> str:
        return self.name
