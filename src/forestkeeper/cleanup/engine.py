"""Deletion of branches that have been merged into a safe branch.

Cleanup runs in two phases. Remote branches whose head commit is contained in
a safe remote branch are deleted first, together with their local
counterparts. Then local-only branches whose head is contained in a safe remote
branch are deleted. Remote deletions can leave local branches without a remote,
so local candidates are only collected once every remote deletion is done.
"""

import logging
from collections.abc import Callable, Sequence

from forestkeeper.cleanup.models import (
    CheckoutAndHead,
    CleanupReport,
    DeletionOutcome,
    DeletionStatus,
    TaskResult,
)
from forestkeeper.cleanup.tasks import TaskSet
from forestkeeper.config import CleanupConfig, MissingConfigurationError, validate_branch_name
from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.exceptions import (
    LocalOperationError,
    RemoteOperationError,
    RemoteRefNotFoundError,
    VCSError,
)
from forestkeeper.vcs.models import Branches
from forestkeeper.workspace.tree import WorkspaceModel

logger = logging.getLogger(__name__)


class BranchCleanupEngine:
    """Finds and deletes obsolete remote and local branches across a forest.

    A branch is only deleted when a safe branch on the remote already contains its
    head commit. Protected branches and the branch a working tree is on are never
    touched. Unless the configuration is acknowledged, the engine runs in pretend
    mode: it analyses and logs everything but deletes nothing.
    """

    def __init__(
        self,
        config: CleanupConfig,
        model: WorkspaceModel,
        checkouts: Sequence[Checkout] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Cleanup configuration
            model: Shared workspace model; the engine invalidates it between phases
            checkouts: Checkouts to clean up (default: every checkout in the model)
        """
        self.config = config
        self.model = model
        self._checkouts = list(checkouts) if checkouts is not None else None
        self._is_protected: Callable[[str], bool] = config.protected_filter()

    def validate(self) -> None:
        """Check the configuration before anything is touched.

        Raises:
            MissingConfigurationError: If there are no safe branches
            InvalidConfigurationError: If a safe branch name is invalid
        """
        if not self.config.safe_branches:
            raise MissingConfigurationError("No safe branches given - will not delete all remote branches")
        for name in self.config.safe_branches:
            validate_branch_name(name)
        if not self.config.cleanup_remote and not self.config.cleanup_local:
            logger.warning("Both remote and local cleanup are disabled. Nothing will be done.")

    def checkouts(self) -> list[Checkout]:
        """Get the checkouts this engine works on, nested ones first."""
        if self._checkouts is None:
            self._checkouts = Checkout.depth_first_sort(self.model.all_checkouts() | self.model.non_build_checkouts())
        return list(self._checkouts)

    def _is_excluded(self, name: str) -> bool:
        return self.config.is_safe(name) or self._is_protected(name)

    async def run(self) -> CleanupReport:
        """Run both cleanup phases.

        Returns:
            What was (or, in pretend mode, would have been) deleted

        Raises:
            ConfigurationError: If the configuration is invalid; nothing is touched
        """
        self.validate()
        report = CleanupReport(acknowledged=self.config.acknowledged)
        if not self.config.acknowledged:
            logger.warning("Cleanup is not acknowledged - running in pretend mode. No branches will be deleted.")

        checkouts = self.checkouts()

        remote_tasks = TaskSet("remote branch cleanup", self.config.max_workers)
        if self.config.cleanup_remote:
            self.collect_remote_branches_for_cleanup(checkouts, remote_tasks, report)
        self._record(await remote_tasks.execute(), report, remote=True)

        # Remote deletions can orphan local branches, so look again from scratch
        self.model.invalidate()

        local_tasks = TaskSet("local branch cleanup", self.config.max_workers)
        if self.config.cleanup_local:
            self.collect_local_branches_for_cleanup(checkouts, local_tasks, report)
        self._record(await local_tasks.execute(), report, remote=False)

        if remote_tasks.is_empty() and local_tasks.is_empty():
            logger.info("Nothing to do.")
        else:
            # The model is shared with the caller
            self.model.invalidate()
        return report

    def collect_remote_branches_for_cleanup(
        self,
        checkouts: Sequence[Checkout],
        tasks: TaskSet,
        report: CleanupReport,
    ) -> list[CheckoutAndHead]:
        """Schedule deletion of remote branches merged into a safe branch.

        Args:
            checkouts: Checkouts to examine
            tasks: Task set the deletions are added to
            report: Report candidates and warnings are recorded in

        Returns:
            The scheduled candidates, in processing order
        """
        snapshots: dict[Checkout, Branches] = {}
        vetoed: set[str] = set()
        candidates = self.collect_remote_candidates(checkouts, snapshots, vetoed, report)
        if not candidates:
            logger.info("No remote branches needing cleanup.")
            return []

        operate_on = self.filter_to_branches_merged_into_safe_branches(candidates, vetoed)
        if not operate_on:
            logger.info("All candidates contain commits not on a safe branch.")
            return []

        for candidate in operate_on:
            report.remote_candidates.append(str(candidate))
            branches = snapshots[candidate.checkout]
            tasks.add(
                f"Delete {candidate}",
                lambda candidate=candidate, branches=branches: self._delete_remote_branch(candidate, branches),
            )
        return operate_on

    def collect_remote_candidates(
        self,
        checkouts: Sequence[Checkout],
        snapshots: dict[Checkout, Branches],
        vetoed: set[str],
        report: CleanupReport,
    ) -> dict[str, set[CheckoutAndHead]]:
        """Find remote branches that are neither safe nor protected, keyed by name.

        In acknowledged runs each checkout is fetched (pruning branches gone from the
        remote) first. If fetching fails the checkout's branch names are vetoed,
        since its view of the remote may be out of date.

        Args:
            checkouts: Checkouts to examine
            snapshots: Filled with the branch snapshot used for each checkout
            vetoed: Filled with branch names that must not be deleted anywhere
            report: Report warnings are recorded in

        Returns:
            Candidates grouped by bare branch name
        """
        candidates: dict[str, set[CheckoutAndHead]] = {}
        for checkout in checkouts:
            logger.info(f"Scan {checkout.logging_name}")
            fetched = True
            if self.config.acknowledged:
                try:
                    checkout.update_remote_tracking_refs()
                    checkout.prune_remote_tracking_refs()
                except RemoteOperationError as e:
                    fetched = False
                    _warn(report, f"Could not fetch {checkout.logging_name}, not deleting its branches: {e}")
                self.model.invalidate_branches(checkout)

            try:
                branches = self.model.branches(checkout)
            except VCSError as e:
                _warn(report, f"Could not list branches of {checkout.logging_name}: {e}")
                continue
            snapshots[checkout] = branches

            for branch in sorted(branches.remote_branches):
                if self._is_excluded(branch.name):
                    continue
                if not fetched:
                    vetoed.add(branch.name)
                    continue
                head = checkout.head_of(branch.tracking_name)
                if head is None:
                    logger.info(f"Could not resolve the head of {branch.tracking_name} in {checkout.logging_name}")
                    vetoed.add(branch.name)
                    continue
                candidates.setdefault(branch.name, set()).add(CheckoutAndHead(checkout, branch, head))
        return candidates

    def filter_to_branches_merged_into_safe_branches(
        self,
        candidates: dict[str, set[CheckoutAndHead]],
        vetoed: set[str] | None = None,
    ) -> list[CheckoutAndHead]:
        """Keep the candidates whose head is on a safe remote branch in every checkout.

        The same branch name in different checkouts is one line of work, so a single
        checkout whose branch is not merged vetoes the name everywhere. Verdicts are
        collected for every checkout first and the veto applied afterwards.

        Args:
            candidates: Candidates grouped by bare branch name
            vetoed: Names already known to be unsafe

        Returns:
            Deletable candidates from the default remote, in sorted order
        """
        unclean: set[str] = set(vetoed or ())
        merged: set[CheckoutAndHead] = set()
        for name in sorted(candidates):
            if name in unclean:
                logger.info(
                    f"Will not delete branch '{name}' because another checkout in the tree "
                    "has a branch with the same name with unpushed or unmerged commits"
                )
                continue
            for candidate in sorted(candidates[name]):
                if self._head_is_on_safe_remote_branch(candidate):
                    merged.add(candidate)
                else:
                    logger.info(
                        f"Will not delete branch '{candidate.branch.tracking_name}' in "
                        f"{candidate.checkout.logging_name} because no safe branch contains its head commit."
                    )
                    unclean.add(name)

        result: list[CheckoutAndHead] = []
        for candidate in sorted(merged):
            if candidate.branch.name in unclean:
                continue
            if not candidate.is_from_default_remote():
                logger.info(f"Skipping {candidate} - it is not from the default remote")
                continue
            result.append(candidate)
        return result

    def _head_is_on_safe_remote_branch(self, candidate: CheckoutAndHead) -> bool:
        try:
            containing = candidate.branches_containing_head()
        except VCSError as e:
            logger.warning(f"Could not find branches containing the head of {candidate}: {e}")
            return False

        for branch in containing.remote_branches:
            if branch.is_local or branch.is_same_name(candidate.branch):
                continue
            if self.config.is_safe(branch.name):
                return True
        return False

    def _is_merged_into_safe_branch(self, checkout: Checkout, commit: str | None) -> bool:
        if commit is None:
            return False
        try:
            containing = checkout.branches_containing_commit(commit)
        except VCSError as e:
            logger.warning(f"Could not find branches containing {commit} in {checkout.logging_name}: {e}")
            return False
        return any(self.config.is_safe(branch.name) for branch in containing.remote_branches)

    def _delete_remote_branch(self, candidate: CheckoutAndHead, branches: Branches) -> DeletionOutcome:
        target = str(candidate)
        if not self.config.acknowledged:
            logger.info(f"Would delete {target}")
            return DeletionOutcome(target=target, status=DeletionStatus.WOULD_DELETE)

        checkout = candidate.checkout
        remote = checkout.default_remote_name() or candidate.branch.remote
        if remote is None:
            return DeletionOutcome(target=target, status=DeletionStatus.NOT_DELETED)

        try:
            deleted = checkout.delete_remote_branch(remote, candidate.branch.name)
        except RemoteRefNotFoundError:
            logger.info(f"Remote branch {candidate.branch} was already deleted on the server.")
            return DeletionOutcome(target=target, status=DeletionStatus.ALREADY_GONE)

        if not deleted:
            logger.info(f"Failed to delete {target}. Skipping.")
            return DeletionOutcome(target=target, status=DeletionStatus.NOT_DELETED)

        logger.info(f"Deleted {target}")
        outcome = DeletionOutcome(target=target, status=DeletionStatus.DELETED)

        local = branches.opposite(candidate.branch)
        if local is None:
            return outcome

        current = branches.current_branch
        if current is not None and current.name == local.name:
            outcome.warnings.append(
                f"Not deleting local branch {local.name} in {checkout.logging_name}: it is the current branch"
            )
            return outcome

        # git -d only checks HEAD and the upstream, which is gone by now
        local_head = checkout.head_of(local.name)
        force = local_head == candidate.head or self._is_merged_into_safe_branch(checkout, local_head)
        try:
            if checkout.delete_local_branch(local.name, current.name if current else None, force):
                logger.info(f"Deleted local {local.name} in {checkout.logging_name}")
                outcome.local_counterpart = f"{checkout.logging_name} {local.name}"
        except LocalOperationError as e:
            outcome.warnings.append(f"Could not delete local branch {local.name} in {checkout.logging_name}: {e}")
        return outcome

    def collect_local_branches_for_cleanup(
        self,
        checkouts: Sequence[Checkout],
        tasks: TaskSet,
        report: CleanupReport,
    ) -> list[CheckoutAndHead]:
        """Schedule deletion of local-only branches merged into a safe remote branch.

        Args:
            checkouts: Checkouts to examine
            tasks: Task set the deletions are added to
            report: Report candidates and warnings are recorded in

        Returns:
            The scheduled candidates, in processing order
        """
        scheduled: list[CheckoutAndHead] = []
        for candidate in self.collect_local_candidates(checkouts, report):
            branches = self.model.branches(candidate.checkout)
            current = branches.current_branch
            if current is not None and current.name == candidate.branch.name:
                _warn(report, f"Will not delete local branch {candidate} because it is the current branch")
                continue

            logger.info(f"Will delete local branch {candidate.branch.name} in {candidate.checkout.logging_name}")
            report.local_candidates.append(str(candidate))
            tasks.add(
                f"Delete local branch {candidate}",
                lambda candidate=candidate: self._delete_local_branch(candidate),
            )
            scheduled.append(candidate)
        return scheduled

    def collect_local_candidates(
        self,
        checkouts: Sequence[Checkout],
        report: CleanupReport,
    ) -> list[CheckoutAndHead]:
        """Find local branches without any remote counterpart whose head is on a safe remote branch.

        Args:
            checkouts: Checkouts to examine
            report: Report warnings are recorded in

        Returns:
            Candidates in sorted order
        """
        candidates: set[CheckoutAndHead] = set()
        for checkout in checkouts:
            try:
                branches = self.model.branches(checkout)
            except VCSError as e:
                _warn(report, f"Could not list branches of {checkout.logging_name}: {e}")
                continue

            for branch in sorted(branches.local_branches):
                if self._is_excluded(branch.name) or branches.has_counterpart(branch):
                    continue
                head = checkout.head_of(branch.name)
                if head is None:
                    continue
                try:
                    containing = checkout.branches_containing_commit(head)
                except VCSError as e:
                    _warn(report, f"Could not find branches containing {branch.name} in {checkout.logging_name}: {e}")
                    continue
                if any(self.config.is_safe(remote.name) for remote in containing.remote_branches):
                    candidates.add(CheckoutAndHead(checkout, branch, head))
        return sorted(candidates)

    def _delete_local_branch(self, candidate: CheckoutAndHead) -> DeletionOutcome:
        target = str(candidate)
        if not self.config.acknowledged:
            logger.info(f"Would delete local branch {target}")
            return DeletionOutcome(target=target, status=DeletionStatus.WOULD_DELETE)

        logger.info(f"Deleting {target}")
        try:
            deleted = candidate.checkout.delete_local_branch(candidate.branch.name, None, True)
        except VCSError as e:
            logger.error(f"Failed to delete {target}: {e}")
            return DeletionOutcome(
                target=target,
                status=DeletionStatus.NOT_DELETED,
                warnings=[f"Failed to delete {target}: {e}"],
            )

        status = DeletionStatus.DELETED if deleted else DeletionStatus.NOT_DELETED
        return DeletionOutcome(target=target, status=status)

    def _record(self, results: list[TaskResult], report: CleanupReport, remote: bool) -> None:
        deleted = report.remote_deleted if remote else report.local_deleted
        for result in results:
            if result.error is not None:
                report.failures.append(f"{result.name}: {result.error}")
                continue
            if result.outcome is None:
                continue
            if result.outcome.status is DeletionStatus.DELETED:
                deleted.append(result.outcome.target)
            if result.outcome.local_counterpart:
                report.local_deleted.append(result.outcome.local_counterpart)
            report.warnings.extend(result.outcome.warnings)


def _warn(report: CleanupReport, message: str) -> None:
    logger.warning(message)
    report.warnings.append(message)


async def run_cleanup(
    config: CleanupConfig,
    model: WorkspaceModel,
    checkouts: Sequence[Checkout] | None = None,
) -> CleanupReport:
    """Run branch cleanup over a forest.

    Args:
        config: Cleanup configuration
        model: Workspace model of the forest
        checkouts: Checkouts to clean up (default: every checkout in the model)

    Returns:
        The cleanup report
    """
    engine = BranchCleanupEngine(config, model, checkouts)
    return await engine.run()
