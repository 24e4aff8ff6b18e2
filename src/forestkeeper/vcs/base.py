"""Abstract base class for a single checkout (working tree).

This module defines the interface the workspace model and the cleanup engine
consume. Concrete implementations run the actual VCS commands.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from functools import total_ordering
from pathlib import Path

from forestkeeper.vcs.models import Branch, Branches, Heads


@total_ordering
class Checkout(ABC):
    """One working tree in the forest.

    Checkouts compare, hash and sort by their canonical path, so two handles for
    the same directory are interchangeable.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the checkout.

        Args:
            path: Root directory of the working tree
        """
        self.path = Path(path).resolve()

    @property
    def logging_name(self) -> str:
        """Get a short name for log messages.

        Returns:
            Name of the checkout's directory
        """
        return self.path.name or str(self.path)

    def branches(self) -> Branches:
        """Build a snapshot of this checkout's branches.

        Returns:
            Local branches, remote branches and the current branch
        """
        local = frozenset(self.local_branches())
        current_name = self.current_branch_name()
        current = None
        if current_name is not None:
            current = next((b for b in local if b.name == current_name), Branch(name=current_name))
        return Branches(
            local_branches=local,
            remote_branches=frozenset(self.remote_branches()),
            current_branch=current,
        )

    @abstractmethod
    def current_branch_name(self) -> str | None:
        """Get the name of the current branch.

        Returns:
            Branch name, or None if HEAD is detached
        """

    @abstractmethod
    def local_branches(self) -> set[Branch]:
        """Get the local branches."""

    @abstractmethod
    def remote_branches(self) -> set[Branch]:
        """Get the remote-tracking branches of every remote."""

    @abstractmethod
    def head_of(self, ref: str) -> str | None:
        """Resolve a ref to a commit id.

        Args:
            ref: Branch name, tracking name or any other revision

        Returns:
            Full commit id, or None if the ref does not resolve
        """

    @abstractmethod
    def branches_containing_commit(self, commit: str) -> Branches:
        """Get every local and remote branch that contains a commit.

        Args:
            commit: Commit id

        Returns:
            Branches whose history includes the commit
        """

    @abstractmethod
    def update_remote_tracking_refs(self) -> None:
        """Fetch remote branch heads.

        Raises:
            RemoteOperationError: If fetching fails
        """

    @abstractmethod
    def prune_remote_tracking_refs(self) -> None:
        """Fetch, removing remote-tracking refs whose branch is gone from the remote.

        Raises:
            RemoteOperationError: If fetching fails
        """

    @abstractmethod
    def default_remote_name(self) -> str | None:
        """Get the remote branches are pushed to by default.

        Returns:
            Remote name, or None if there are no remotes
        """

    @abstractmethod
    def delete_local_branch(self, name: str, current_branch_hint: str | None = None, force: bool = False) -> bool:
        """Delete a local branch.

        Args:
            name: Branch to delete
            current_branch_hint: Branch to switch to if `name` is checked out
            force: Delete even if the branch is not merged

        Returns:
            True if the branch was deleted

        Raises:
            LocalOperationError: If git refuses to delete the branch
        """

    @abstractmethod
    def delete_remote_branch(self, remote_name: str, branch_name: str) -> bool:
        """Delete a branch on a remote.

        Args:
            remote_name: Remote to delete from
            branch_name: Bare branch name

        Returns:
            True if the branch was deleted

        Raises:
            RemoteRefNotFoundError: If the branch no longer exists on the remote
            RemoteOperationError: If the push fails for any other reason
        """

    @abstractmethod
    def is_dirty(self) -> bool:
        """Check for uncommitted changes, including untracked files."""

    @abstractmethod
    def is_detached_head(self) -> bool:
        """Check whether HEAD is detached."""

    @abstractmethod
    def remote_heads(self) -> Heads:
        """List the branch heads of the default remote."""

    @abstractmethod
    def submodules(self) -> list["Checkout"]:
        """Get every working tree nested below this one, recursively."""

    @abstractmethod
    def checkout_of(self, path: Path) -> "Checkout | None":
        """Get the working tree that owns a path below this checkout.

        Args:
            path: File or folder

        Returns:
            The innermost checkout containing the path, or None
        """

    @abstractmethod
    def submodule_root(self) -> "Checkout":
        """Get the top-level superproject, or this checkout if it has none."""

    @staticmethod
    def depth_first_sort(checkouts: Iterable["Checkout"]) -> list["Checkout"]:
        """Order checkouts so nested working trees come before their parents.

        Args:
            checkouts: Checkouts to order

        Returns:
            Deepest paths first, ties broken by path
        """
        return sorted(set(checkouts), key=lambda c: (-len(c.path.parts), str(c.path)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Checkout):
            return NotImplemented
        return self.path == other.path

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Checkout):
            return NotImplemented
        return str(self.path) < str(other.path)

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    def __str__(self) -> str:
        return self.logging_name
