"""Branch cleanup: delete branches already merged into a safe branch."""

from forestkeeper.cleanup.engine import BranchCleanupEngine, run_cleanup
from forestkeeper.cleanup.models import (
    CheckoutAndHead,
    CleanupReport,
    DeletionOutcome,
    DeletionStatus,
    TaskResult,
)
from forestkeeper.cleanup.tasks import TaskSet

__all__ = [
    "BranchCleanupEngine",
    "CheckoutAndHead",
    "CleanupReport",
    "DeletionOutcome",
    "DeletionStatus",
    "TaskResult",
    "TaskSet",
    "run_cleanup",
]
