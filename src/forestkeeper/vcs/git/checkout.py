"""Git implementation of the checkout abstraction."""

import logging
from pathlib import Path

import git
from git import GitCommandError

from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.exceptions import (
    LocalOperationError,
    NotARepositoryError,
    RemoteOperationError,
    RemoteRefNotFoundError,
    VCSOperationError,
)
from forestkeeper.vcs.models import Branch, Branches, Heads

logger = logging.getLogger(__name__)

REMOTE_REF_GONE = "remote ref does not exist"


def parse_ref(refname: str, remote_names: list[str]) -> Branch | None:
    """Turn a full ref name into a Branch.

    Remote names may themselves contain slashes, so the longest configured remote
    name that prefixes the ref wins.

    Args:
        refname: Full ref, e.g. 'refs/heads/main' or 'refs/remotes/origin/feature/x'
        remote_names: Names of the configured remotes

    Returns:
        The branch, or None for symbolic refs like 'origin/HEAD' and non-branch refs
    """
    refname = refname.strip()
    if refname.startswith("refs/heads/"):
        return Branch(name=refname.removeprefix("refs/heads/"))
    if not refname.startswith("refs/remotes/"):
        return None

    rest = refname.removeprefix("refs/remotes/")
    matching = [r for r in remote_names if rest.startswith(r + "/")]
    if matching:
        remote = max(matching, key=len)
        name = rest[len(remote) + 1 :]
    elif "/" in rest:
        remote, name = rest.split("/", 1)
    else:
        return None

    if not name or name == "HEAD":
        return None
    return Branch(name=name, remote=remote)


class GitCheckout(Checkout):
    """A git working tree, driven through GitPython."""

    def __init__(self, repo_path: str | Path | None = None) -> None:
        """Initialize the checkout.

        Args:
            repo_path: Any path inside the working tree (default: current directory)

        Raises:
            NotARepositoryError: If the path is not inside a git working tree
            VCSOperationError: If git fails for another reason
        """
        requested = Path(repo_path or Path.cwd())

        try:
            self.repo = git.Repo(requested, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            msg = f"Not a Git repository: {requested}"
            raise NotARepositoryError(msg) from e
        except git.GitError as e:
            msg = f"Git error: {e}"
            raise VCSOperationError(msg) from e

        if self.repo.working_tree_dir is None:
            msg = f"Not a Git working tree (bare repository): {requested}"
            raise NotARepositoryError(msg)

        super().__init__(self.repo.working_tree_dir)

    @classmethod
    def repository(cls, path: str | Path) -> "GitCheckout | None":
        """Open the checkout containing a path, if there is one.

        Args:
            path: File or folder

        Returns:
            The checkout, or None if the path is not inside a git working tree
        """
        try:
            return cls(path)
        except NotARepositoryError:
            return None

    def _remote_names(self) -> list[str]:
        return [remote.name for remote in self.repo.remotes]

    def current_branch_name(self) -> str | None:
        if self.repo.head.is_detached:
            return None
        return self.repo.active_branch.name

    def local_branches(self) -> set[Branch]:
        return {Branch(name=head.name) for head in self.repo.heads}

    def remote_branches(self) -> set[Branch]:
        try:
            output = self.repo.git.for_each_ref("--format=%(refname)", "refs/remotes")
        except GitCommandError as e:
            msg = f"Unable to list remote branches in {self.logging_name}: {e}"
            raise VCSOperationError(msg) from e

        remotes = self._remote_names()
        result: set[Branch] = set()
        for line in output.splitlines():
            branch = parse_ref(line, remotes)
            if branch is not None:
                result.add(branch)
        return result

    def head_of(self, ref: str) -> str | None:
        try:
            return self.repo.git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}") or None
        except GitCommandError:
            return None

    def branches_containing_commit(self, commit: str) -> Branches:
        try:
            output = self.repo.git.branch("-a", "--contains", commit, "--format=%(refname)")
        except GitCommandError as e:
            msg = f"Unable to find branches containing {commit} in {self.logging_name}: {e}"
            raise VCSOperationError(msg) from e

        remotes = self._remote_names()
        local: set[Branch] = set()
        remote: set[Branch] = set()
        for line in output.splitlines():
            branch = parse_ref(line, remotes)
            if branch is None:
                continue
            (local if branch.is_local else remote).add(branch)
        return Branches(local_branches=frozenset(local), remote_branches=frozenset(remote))

    def update_remote_tracking_refs(self) -> None:
        self._fetch("--all")

    def prune_remote_tracking_refs(self) -> None:
        self._fetch("--all", "--prune")

    def _fetch(self, *args: str) -> None:
        if not self.repo.remotes:
            return
        try:
            self.repo.git.fetch(*args)
        except GitCommandError as e:
            msg = f"Fetch failed in {self.logging_name}: {e}"
            raise RemoteOperationError(msg) from e

    def default_remote_name(self) -> str | None:
        remotes = self._remote_names()
        if not remotes:
            return None

        # Prefer the remote the current branch tracks
        if not self.repo.head.is_detached:
            tracking = self.repo.active_branch.tracking_branch()
            if tracking is not None and tracking.remote_name in remotes:
                return tracking.remote_name

        if "origin" in remotes:
            return "origin"
        return remotes[0]

    def delete_local_branch(self, name: str, current_branch_hint: str | None = None, force: bool = False) -> bool:
        try:
            if name == self.current_branch_name():
                if not current_branch_hint or current_branch_hint == name:
                    msg = f"Will not delete {name} in {self.logging_name}: it is the current branch"
                    raise LocalOperationError(msg)
                self.repo.git.checkout(current_branch_hint)
            self.repo.git.branch("-D" if force else "-d", name)
        except GitCommandError as e:
            msg = f"Failed to delete local branch {name} in {self.logging_name}: {e}"
            raise LocalOperationError(msg) from e

        logger.debug(f"Deleted local branch {name} in {self.logging_name}")
        return True

    def delete_remote_branch(self, remote_name: str, branch_name: str) -> bool:
        try:
            self.repo.git.push(remote_name, "--delete", branch_name)
        except GitCommandError as e:
            if REMOTE_REF_GONE in str(e):
                msg = f"Remote branch {remote_name}/{branch_name} does not exist"
                raise RemoteRefNotFoundError(msg) from e
            msg = f"Failed to delete {remote_name}/{branch_name} from {self.logging_name}: {e}"
            raise RemoteOperationError(msg) from e

        logger.debug(f"Deleted remote branch {remote_name}/{branch_name} from {self.logging_name}")
        return True

    def is_dirty(self) -> bool:
        return self.repo.is_dirty(untracked_files=True)

    def is_detached_head(self) -> bool:
        return self.repo.head.is_detached

    def remote_heads(self) -> Heads:
        remote = self.default_remote_name()
        if remote is None:
            return Heads()
        try:
            output = self.repo.git.ls_remote("--heads", remote)
        except GitCommandError as e:
            msg = f"Unable to list heads of {remote} for {self.logging_name}: {e}"
            raise RemoteOperationError(msg) from e
        return Heads.from_ls_remote(remote, output)

    def submodules(self) -> list[Checkout]:
        try:
            output = self.repo.git.submodule("--quiet", "foreach", "--recursive", "pwd")
        except GitCommandError as e:
            msg = f"Unable to enumerate submodules of {self.logging_name}: {e}"
            raise VCSOperationError(msg) from e

        result: list[Checkout] = []
        for line in output.splitlines():
            path = Path(line.strip())
            if not line.strip() or not path.is_dir():
                continue
            checkout = GitCheckout.repository(path)
            if checkout is None:
                logger.debug(f"Skipping uninitialized submodule at {path}")
                continue
            result.append(checkout)
        return result

    def checkout_of(self, path: Path) -> Checkout | None:
        path = Path(path).resolve()
        if path != self.path and self.path not in path.parents:
            return None

        candidate = path if path.is_dir() else path.parent
        while candidate != self.path:
            if (candidate / ".git").exists():
                return GitCheckout.repository(candidate)
            candidate = candidate.parent
        return self

    def submodule_root(self) -> Checkout:
        current: GitCheckout = self
        while True:
            try:
                parent = current.repo.git.rev_parse("--show-superproject-working-tree").strip()
            except GitCommandError:
                return current
            if not parent:
                return current
            superproject = GitCheckout.repository(parent)
            if superproject is None or superproject == current:
                return current
            current = superproject
