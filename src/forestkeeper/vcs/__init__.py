"""Checkout abstraction for forestkeeper.

This module provides the interface the workspace model and cleanup engine use
to talk to individual git working trees.
"""

from forestkeeper.vcs.base import Checkout
from forestkeeper.vcs.exceptions import (
    LocalOperationError,
    NotARepositoryError,
    RemoteOperationError,
    RemoteRefNotFoundError,
    VCSError,
    VCSOperationError,
)
from forestkeeper.vcs.models import Branch, Branches, Head, Heads

__all__ = [
    "Branch",
    "Branches",
    "Checkout",
    "Head",
    "Heads",
    "LocalOperationError",
    "NotARepositoryError",
    "RemoteOperationError",
    "RemoteRefNotFoundError",
    "VCSError",
    "VCSOperationError",
]
