"""Shared pytest fixtures."""

from fixtures.git_repos import forest_repos, origin_repo

__all__ = ["forest_repos", "origin_repo"]
