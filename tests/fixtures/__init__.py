"""Shared test fixtures: an in-memory checkout and real git repositories."""

from fixtures.fake_checkout import FakeCheckout
from fixtures.git_repos import commit_file, git_forest, origin_and_clone, write_pom

__all__ = [
    "FakeCheckout",
    "commit_file",
    "git_forest",
    "origin_and_clone",
    "write_pom",
]
