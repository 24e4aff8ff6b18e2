"""Models for branch cleanup."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.models import Branch, Branches


@dataclass(frozen=True, order=True)
class CheckoutAndHead:
    """A branch in a checkout, with the commit it pointed at when examined.

    Sorts by checkout, then branch, then head, so candidates are processed and
    logged in the same order on every run.
    """

    checkout: Checkout
    branch: Branch
    head: str

    def is_from_default_remote(self) -> bool:
        """Check whether the branch lives on the checkout's default remote."""
        if self.branch.remote is None:
            return False
        return self.branch.remote == self.checkout.default_remote_name()

    def branches_containing_head(self) -> Branches:
        return self.checkout.branches_containing_commit(self.head)

    def __str__(self) -> str:
        return f"{self.checkout.logging_name} {self.branch.tracking_name}"


class DeletionStatus(Enum):
    """What happened to one scheduled deletion."""

    DELETED = "deleted"
    WOULD_DELETE = "would-delete"
    ALREADY_GONE = "already-gone"
    NOT_DELETED = "not-deleted"


class DeletionOutcome(BaseModel):
    """Result of one scheduled deletion unit."""

    target: str = Field(description="Checkout and branch the unit worked on")
    status: DeletionStatus
    local_counterpart: str | None = Field(
        default=None,
        description="Local branch deleted along with a remote one",
    )
    warnings: list[str] = Field(default_factory=list)


class TaskResult(BaseModel):
    """A unit of work as run by a TaskSet."""

    name: str
    outcome: DeletionOutcome | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class CleanupReport(BaseModel):
    """Summary of a cleanup run."""

    acknowledged: bool = Field(description="Whether branches were really deleted")
    remote_candidates: list[str] = Field(
        default_factory=list,
        description="Remote branches selected for deletion, in processing order",
    )
    local_candidates: list[str] = Field(
        default_factory=list,
        description="Local branches selected for deletion, in processing order",
    )
    remote_deleted: list[str] = Field(default_factory=list)
    local_deleted: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        """Check whether no branch was selected in either phase."""
        return not self.remote_candidates and not self.local_candidates

    @property
    def would_delete(self) -> list[str]:
        """Get everything a dry run would have deleted."""
        return self.remote_candidates + self.local_candidates
