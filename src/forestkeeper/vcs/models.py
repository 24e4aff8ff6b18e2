"""Models describing branches and heads of a checkout."""

from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Branch(BaseModel):
    """A local or remote-tracking branch.

    A local branch and a remote branch with the same name are distinct records;
    `Branches.opposite()` pairs them up.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Branch name without any remote prefix")
    remote: str | None = Field(default=None, description="Remote name, None for local branches")

    @property
    def is_local(self) -> bool:
        """Check whether this is a local branch.

        Returns:
            True if the branch has no remote
        """
        return self.remote is None

    @property
    def tracking_name(self) -> str:
        """Get the remote-qualified name (e.g. 'origin/feature/x') or the bare name.

        Returns:
            Name usable as a git ref
        """
        if self.remote is None:
            return self.name
        return f"{self.remote}/{self.name}"

    def is_same_name(self, other: "Branch") -> bool:
        """Check whether another branch has the same bare name."""
        return self.name == other.name

    def _sort_key(self) -> tuple[str, str]:
        return (self.name, self.remote or "")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Branch):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        return self.tracking_name


class Branches(BaseModel):
    """Snapshot of the branches of one checkout."""

    model_config = ConfigDict(frozen=True)

    local_branches: frozenset[Branch] = Field(default_factory=frozenset)
    remote_branches: frozenset[Branch] = Field(default_factory=frozenset)
    current_branch: Branch | None = Field(
        default=None,
        description="Branch the working tree is on, None if detached",
    )

    def find(self, name: str, remote: str | None = None) -> Branch | None:
        """Find a branch by name.

        Args:
            name: Bare branch name
            remote: Remote name, or None to look among local branches

        Returns:
            The matching branch, or None
        """
        pool = self.local_branches if remote is None else self.remote_branches
        for branch in pool:
            if branch.name == name and branch.remote == remote:
                return branch
        return None

    def find_remote(self, name: str) -> Branch | None:
        """Find a remote branch with the given name on any remote.

        Returns:
            The first matching remote branch in sort order, or None
        """
        matches = sorted(b for b in self.remote_branches if b.name == name)
        return matches[0] if matches else None

    def opposite(self, branch: Branch) -> Branch | None:
        """Get the branch with the same name on the other side.

        For a remote branch this is the local branch of the same name; for a local
        branch it is a remote branch of the same name.

        Args:
            branch: Branch to pair up

        Returns:
            The counterpart branch, or None if there is none
        """
        if branch.is_local:
            return self.find_remote(branch.name)
        return self.find(branch.name)

    def has_counterpart(self, branch: Branch) -> bool:
        """Check for a remote-for-local or local-for-remote branch of the same name."""
        return self.opposite(branch) is not None

    @property
    def all_branches(self) -> list[Branch]:
        """Get local and remote branches in sort order."""
        return sorted(self.local_branches | self.remote_branches)


class Head(BaseModel):
    """A branch head as listed on a remote."""

    model_config = ConfigDict(frozen=True)

    commit: str
    name: str


class Heads(BaseModel):
    """Branch heads of a remote, as reported by `git ls-remote --heads`."""

    remote: str | None = None
    heads: list[Head] = Field(default_factory=list)

    @classmethod
    def from_ls_remote(cls, remote: str | None, output: str) -> "Heads":
        """Parse `git ls-remote --heads` output.

        Args:
            remote: Name of the remote that was listed
            output: Raw command output, one `<sha>\\trefs/heads/<name>` per line

        Returns:
            Parsed heads
        """
        heads: list[Head] = []
        for line in output.splitlines():
            parts = line.strip().split()
            if len(parts) != 2:
                continue
            commit, ref = parts
            heads.append(Head(commit=commit, name=ref.removeprefix("refs/heads/")))
        return cls(remote=remote, heads=heads)

    def find(self, name: str) -> Head | None:
        """Find the head of a branch by name."""
        for head in self.heads:
            if head.name == name:
                return head
        return None

    def __len__(self) -> int:
        return len(self.heads)
