"""In-memory model of the modules and branches of a checkout forest."""

import logging
import threading
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TypeVar, assert_never

from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.exceptions import VCSError
from forestkeeper.vcs.git.checkout import GitCheckout
from forestkeeper.vcs.models import Branches, Heads
from forestkeeper.workspace.cache import KeyedMemo
from forestkeeper.workspace.descriptor import discover_descriptors, parse_module
from forestkeeper.workspace.models import Module, ProjectFamily
from forestkeeper.workspace.scope import Scope

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Cache:
    """Indices built by one scan, plus facts memoized on first query."""

    def __init__(self, root: Checkout, max_workers: int) -> None:
        self.root = root
        self.max_workers = max_workers
        self._lock = threading.Lock()

        self.modules_by_group: dict[str, dict[str, Module]] = {}
        self.modules_by_checkout: dict[Checkout, set[Module]] = {}
        self.checkout_for_module: dict[Module, Checkout] = {}
        self.non_build: set[Checkout] = set()
        self._intern_table: dict[Path, Checkout] = {}

        self.branch = KeyedMemo[Checkout, str | None](lambda co: co.current_branch_name())
        self.dirty = KeyedMemo[Checkout, bool](lambda co: co.is_dirty())
        self.detached = KeyedMemo[Checkout, bool](lambda co: co.is_detached_head())
        self.branches = KeyedMemo[Checkout, Branches](lambda co: co.branches())
        self.remote_heads = KeyedMemo[Checkout, Heads](lambda co: co.remote_heads())
        self.branch_by_group_id = KeyedMemo[str, str | None](self._most_common_branch_for_group_id)
        self.checkouts_for_family = KeyedMemo[ProjectFamily, frozenset[Checkout]](self._checkouts_in_family)

    def intern(self, checkout: Checkout) -> Checkout:
        """Get the one checkout instance for a canonical path."""
        with self._lock:
            return self._intern_table.setdefault(checkout.path, checkout)

    def clear(self) -> None:
        with self._lock:
            self.modules_by_group.clear()
            self.modules_by_checkout.clear()
            self.checkout_for_module.clear()
            self.non_build.clear()
            self._intern_table.clear()
        for memo in (
            self.branch,
            self.dirty,
            self.detached,
            self.branches,
            self.remote_heads,
            self.branch_by_group_id,
            self.checkouts_for_family,
        ):
            memo.clear()

    def populate(self) -> None:
        """Scan the forest and build the module indices."""
        self.clear()
        self.intern(self.root)
        try:
            for submodule in self.root.submodules():
                self.intern(submodule)
        except VCSError as e:
            logger.warning(f"Unable to enumerate submodules of {self.root.logging_name}: {e}")

        paths = discover_descriptors(self.root.path, self.max_workers)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._cache_one_descriptor, path) for path in sorted(paths)]
            for future in as_completed(futures):
                future.result()

        with self._lock:
            self.non_build = set(self._intern_table.values()) - set(self.modules_by_checkout)

        logger.debug(
            f"Scanned {self.root.logging_name}: {len(self.checkout_for_module)} modules in "
            f"{len(self.modules_by_checkout)} checkouts, {len(self.non_build)} without modules"
        )

    def _cache_one_descriptor(self, path: Path) -> None:
        module = parse_module(path)
        if module is None:
            return

        try:
            checkout = self.root.checkout_of(path)
        except VCSError as e:
            logger.warning(f"Unable to resolve the checkout of {path}: {e}")
            return
        if checkout is None:
            logger.debug(f"No checkout owns {path}")
            return

        checkout = self.intern(checkout)
        with self._lock:
            self.modules_by_group.setdefault(module.group_id, {})[module.artifact_id] = module
            self.modules_by_checkout.setdefault(checkout, set()).add(module)
            self.checkout_for_module[module] = checkout

    def all_modules(self) -> set[Module]:
        with self._lock:
            return set(self.checkout_for_module)

    def checkouts_with_modules(self) -> dict[Checkout, set[Module]]:
        with self._lock:
            return {co: set(modules) for co, modules in self.modules_by_checkout.items()}

    def _checkouts_in_family(self, family: ProjectFamily) -> frozenset[Checkout]:
        return frozenset(
            checkout
            for checkout, modules in self.checkouts_with_modules().items()
            if any(m.family == family for m in modules)
        )

    def _most_common_branch_for_group_id(self, group_id: str) -> str | None:
        # Count each checkout once, and only if it is on a branch
        counts: Counter[str] = Counter()
        for checkout, modules in self.checkouts_with_modules().items():
            if not any(m.group_id == group_id for m in modules):
                continue
            branch = self.branch.get(checkout)
            if branch is not None:
                counts[branch] += 1
        if not counts:
            return None
        return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


class WorkspaceModel:
    """Which modules live in which checkout, on which branch, in what state.

    The model is built by scanning the forest on first query and then answers
    from memory. It is never refreshed behind the caller's back: anything that
    changes branches on disk (fetch, delete, checkout) must be followed by
    `invalidate()` before the model is queried again.
    """

    def __init__(self, root: Checkout, max_workers: int = 8) -> None:
        """Initialize the model.

        Args:
            root: The top-level checkout (superproject) of the forest
            max_workers: Parallelism for descriptor discovery and parsing
        """
        self.root = root
        self._lock = threading.Lock()
        self._up_to_date = False
        self._cache = _Cache(root, max_workers)

    @classmethod
    def from_path(cls, path: str | Path, max_workers: int = 8) -> "WorkspaceModel | None":
        """Build a model for the forest containing a path.

        Args:
            path: Any file or folder inside the forest
            max_workers: Parallelism for descriptor discovery and parsing

        Returns:
            The model rooted at the top-level superproject, or None if the path is
            not inside a git working tree
        """
        checkout = GitCheckout.repository(path)
        if checkout is None:
            logger.error(f"Not a Git repository: {path}")
            return None
        return cls(checkout.submodule_root(), max_workers=max_workers)

    @property
    def is_populated(self) -> bool:
        """Check whether the cache is currently populated."""
        return self._up_to_date

    def invalidate(self) -> None:
        """Mark the cache stale and drop every memoized fact.

        Does nothing if the cache is already stale.
        """
        with self._lock:
            if self._up_to_date:
                self._cache.clear()
                self._up_to_date = False
                logger.debug(f"Invalidated workspace cache for {self.root.logging_name}")

    invalidate_cache = invalidate

    def invalidate_branches(self, checkout: Checkout) -> None:
        """Drop the memoized branch facts of one checkout."""
        self._cache.branches.discard(checkout)
        self._cache.branch.discard(checkout)
        self._cache.detached.discard(checkout)
        self._cache.remote_heads.discard(checkout)
        self._cache.branch_by_group_id.clear()

    def _with_cache(self) -> _Cache:
        with self._lock:
            if not self._up_to_date:
                self._cache.populate()
                self._up_to_date = True
            return self._cache

    def find_module(self, group_id: str, artifact_id: str) -> Module | None:
        """Find a module by its coordinates."""
        cache = self._with_cache()
        return cache.modules_by_group.get(group_id, {}).get(artifact_id)

    def all_modules(self) -> set[Module]:
        return self._with_cache().all_modules()

    def modules_for_group_id(self, group_id: str) -> list[Module]:
        return sorted(m for m in self.all_modules() if m.group_id == group_id)

    def modules_for_family(self, family: ProjectFamily) -> list[Module]:
        return sorted(m for m in self.all_modules() if m.family == family)

    def modules_within(self, checkout: Checkout) -> set[Module]:
        """Get the modules whose descriptors live in a checkout."""
        return set(self._with_cache().checkouts_with_modules().get(checkout, set()))

    def module_of(self, path: str | Path) -> Module | None:
        """Find the innermost module whose folder contains a path.

        Args:
            path: A descriptor, a module folder or any file within a module

        Returns:
            The module, or None if the path is outside every module
        """
        target = Path(path).resolve()
        candidates = [m for m in self.all_modules() if m.path == target or m.folder == target or m.folder in target.parents]
        if not candidates:
            return None
        return max(candidates, key=lambda m: len(m.folder.parts))

    def checkout_for(self, module: Module) -> Checkout | None:
        return self._with_cache().checkout_for_module.get(module)

    def checkouts_for(self, modules: Iterable[Module]) -> list[Checkout]:
        cache = self._with_cache()
        found = {cache.checkout_for_module[m] for m in modules if m in cache.checkout_for_module}
        return sorted(found)

    def all_checkouts(self) -> set[Checkout]:
        """Get every checkout that contains at least one module."""
        return set(self._with_cache().checkouts_with_modules())

    def non_build_checkouts(self) -> set[Checkout]:
        """Get the checkouts that contain no module at all."""
        return set(self._with_cache().non_build)

    def group_ids_in(self, checkout: Checkout) -> set[str]:
        return {m.group_id for m in self.modules_within(checkout)}

    def branch_for(self, checkout: Checkout) -> str | None:
        """Get the current branch of a checkout, None if detached."""
        return self._with_cache().branch.get(checkout)

    def is_dirty(self, checkout: Checkout) -> bool:
        return self._with_cache().dirty.get(checkout)

    def is_detached_head(self, checkout: Checkout) -> bool:
        return self._with_cache().detached.get(checkout)

    def branches(self, checkout: Checkout) -> Branches:
        """Get the branch snapshot of a checkout."""
        return self._with_cache().branches.get(checkout)

    def remote_heads(self, checkout: Checkout) -> Heads:
        return self._with_cache().remote_heads.get(checkout)

    def most_common_branch_for_group_id(self, group_id: str) -> str | None:
        """Get the branch most checkouts hosting a group id are on.

        Ties go to the alphabetically first branch.

        Args:
            group_id: Group id to look for

        Returns:
            Branch name, or None if no such checkout is on a branch
        """
        return self._with_cache().branch_by_group_id.get(group_id)

    def all_branches(self, predicate: Callable[[Checkout], bool] | None = None) -> set[str]:
        """Get the names of the branches the checkouts are on.

        Args:
            predicate: Optional filter on checkouts

        Returns:
            Branch names, ignoring checkouts with a detached head
        """
        result: set[str] = set()
        for checkout in self.all_checkouts():
            if predicate is not None and not predicate(checkout):
                continue
            branch = self.branch_for(checkout)
            if branch:
                result.add(branch)
        return result

    def all_versions(self, predicate: Callable[[Module], bool] | None = None) -> set[str]:
        return {m.version for m in self.all_modules() if predicate is None or predicate(m)}

    def are_versions_consistent(self) -> bool:
        """Check whether every module has the same version."""
        return len(self.all_versions()) <= 1

    def modules_by_group_id(self) -> dict[str, list[Module]]:
        result: dict[str, list[Module]] = {}
        for module in sorted(self.all_modules()):
            result.setdefault(module.group_id, []).append(module)
        return result

    def modules_by_version(self, predicate: Callable[[Module], bool] | None = None) -> dict[str, list[Module]]:
        result: dict[str, list[Module]] = {}
        for module in sorted(self.all_modules()):
            if predicate is None or predicate(module):
                result.setdefault(module.version, []).append(module)
        return dict(sorted(result.items()))

    def modules_by_branch_by_group_id(
        self,
        predicate: Callable[[Module], bool] | None = None,
    ) -> dict[str, dict[str, list[Module]]]:
        """Group modules by group id, then by the branch their checkout is on."""
        cache = self._with_cache()
        result: dict[str, dict[str, list[Module]]] = {}
        for module in sorted(cache.all_modules()):
            if predicate is not None and not predicate(module):
                continue
            by_branch = result.setdefault(module.group_id, {})
            checkout = cache.checkout_for_module.get(module)
            if checkout is None:
                continue
            branch = cache.branch.get(checkout)
            if branch is not None:
                by_branch.setdefault(branch, []).append(module)
        return result

    def branches_by_group_id(self) -> dict[str, list[str]]:
        """Get the tracking names of all branches of the checkouts hosting each group id."""
        result: dict[str, set[str]] = {}
        for checkout, modules in self._with_cache().checkouts_with_modules().items():
            names = {b.tracking_name for b in self.branches(checkout).all_branches}
            for group_id in {m.group_id for m in modules}:
                result.setdefault(group_id, set()).update(names)
        return {group_id: sorted(names) for group_id, names in sorted(result.items())}

    def checkouts_containing_group_id(self, group_id: str) -> set[Checkout]:
        return {
            checkout
            for checkout, modules in self._with_cache().checkouts_with_modules().items()
            if any(m.group_id == group_id for m in modules)
        }

    def checkouts_in_family(self, family: ProjectFamily) -> set[Checkout]:
        return set(self._with_cache().checkouts_for_family.get(family))

    def checkouts_in_family_or_child_family(self, family: ProjectFamily) -> set[Checkout]:
        return {
            checkout
            for checkout, modules in self._with_cache().checkouts_with_modules().items()
            if any(m.family == family or family.is_parent_family_of(m.group_id) for m in modules)
        }

    def match_checkouts(
        self,
        scope: Scope | str,
        calling_checkout: Checkout,
        include_root: bool = False,
        family: ProjectFamily | str | None = None,
        group_id: str | None = None,
    ) -> list[Checkout]:
        """Get a depth-first list of the checkouts a scope covers.

        Args:
            scope: Which checkouts to select
            calling_checkout: Checkout the operation was invoked from
            include_root: Add the superproject, whose submodule pointers change when
                its children do. It is only added when something else matched, so an
                operation never touches the superproject alone.
            family: Family for the family scopes (default: derived from group_id)
            group_id: Group id of the calling module

        Returns:
            Matching checkouts, nested ones before their parents

        Raises:
            ValueError: If the scope needs a family or group id that was not given
        """
        scope = Scope.parse(scope)
        if isinstance(family, str):
            family = ProjectFamily.named(family)
        if family is None and group_id:
            family = ProjectFamily.from_group_id(group_id)

        checkouts: set[Checkout]
        match scope:
            case Scope.JUST_THIS:
                checkouts = {calling_checkout}
            case Scope.FAMILY:
                checkouts = self.checkouts_in_family(_require(family, scope))
            case Scope.FAMILY_OR_CHILD_FAMILY:
                checkouts = self.checkouts_in_family_or_child_family(_require(family, scope))
            case Scope.SAME_GROUP_ID:
                checkouts = self.checkouts_containing_group_id(_require(group_id, scope))
            case Scope.ALL_PROJECT_FAMILIES:
                checkouts = self.all_checkouts()
            case Scope.ALL:
                checkouts = self.all_checkouts() | self.non_build_checkouts()
            case _:
                assert_never(scope)

        if include_root:
            if checkouts:
                checkouts.add(self.root)
        else:
            checkouts.discard(self.root)
        return Checkout.depth_first_sort(checkouts)


def _require(value: T | None, scope: Scope) -> T:
    if value is None:
        raise ValueError(f"Scope {scope.value} needs a family or group id")
    return value


def scan(path: str | Path, max_workers: int = 8) -> WorkspaceModel | None:
    """Build a workspace model for the forest containing a path.

    Returns:
        The model, or None if the path is not inside a git working tree
    """
    return WorkspaceModel.from_path(path, max_workers=max_workers)
