"""Real git repositories for integration tests.

Repositories are created with GitPython in pytest's tmp_path: a bare repository
acting as the server, a clone of it to work in, and optionally submodules.
"""

from pathlib import Path

import git
import pytest

POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>{group_id}</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
</project>
"""


def _configure(repo: git.Repo) -> None:
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")
        config.set_value('protocol "file"', "allow", "always")


def write_pom(folder: Path, group_id: str, artifact_id: str, version: str = "1.0.0") -> Path:
    """Write a minimal descriptor into a folder."""
    folder.mkdir(parents=True, exist_ok=True)
    pom = folder / "pom.xml"
    pom.write_text(POM_TEMPLATE.format(group_id=group_id, artifact_id=artifact_id, version=version))
    return pom


def commit_file(repo: git.Repo, name: str, content: str | None = None, message: str | None = None) -> str:
    """Write a file, commit it and return the new commit id."""
    path = Path(repo.working_tree_dir or "") / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if content is not None else f"{name}\n")
    repo.index.add([str(path)])
    return repo.index.commit(message or f"Add {name}").hexsha


def origin_and_clone(root: Path, name: str = "project") -> tuple[git.Repo, git.Repo]:
    """Create a bare 'server' repository and a clone of it on branch develop.

    Args:
        root: Folder to create both repositories in
        name: Name of the clone's folder

    Returns:
        The bare origin and the clone
    """
    origin = git.Repo.init(root / f"{name}.git", bare=True, initial_branch="develop")

    clone = git.Repo.clone_from(str(origin.git_dir), root / name)
    _configure(clone)
    clone.git.symbolic_ref("HEAD", "refs/heads/develop")
    commit_file(clone, "README.md", "initial\n", "Initial commit")
    clone.git.push("-u", "origin", "develop")
    return origin, clone


def git_forest(root: Path) -> dict[str, git.Repo]:
    """Create a superproject with two submodules, each with a descriptor.

    Layout:
        forest/                       no descriptor
        forest/kivakit/pom.xml        com.telenav.kivakit
        forest/kivakit-extensions/    com.telenav.kivakit.extensions

    Returns:
        The repositories keyed by 'forest', 'kivakit' and 'kivakit-extensions'
    """
    repos: dict[str, git.Repo] = {}
    for name, group_id in (
        ("kivakit", "com.telenav.kivakit"),
        ("kivakit-extensions", "com.telenav.kivakit.extensions"),
    ):
        _, clone = origin_and_clone(root / "servers", name)
        commit_file(clone, "pom.xml", POM_TEMPLATE.format(group_id=group_id, artifact_id=name, version="1.0.0"))
        clone.git.push("origin", "develop")
        repos[name] = clone

    _, forest = origin_and_clone(root, "forest")
    for name in ("kivakit", "kivakit-extensions"):
        # Local paths as submodule urls need the file protocol
        forest.git(c="protocol.file.allow=always").submodule("add", str(root / "servers" / f"{name}.git"), name)
    forest.git.commit("-m", "Add submodules")

    for name in ("kivakit", "kivakit-extensions"):
        submodule = git.Repo(Path(forest.working_tree_dir or "") / name)
        _configure(submodule)
        submodule.git.checkout("develop")
        repos[name] = submodule
    repos["forest"] = forest
    return repos


@pytest.fixture
def origin_repo(tmp_path: Path) -> tuple[git.Repo, git.Repo]:
    """Create a bare origin and a clone of it."""
    return origin_and_clone(tmp_path)


@pytest.fixture
def forest_repos(tmp_path: Path) -> dict[str, git.Repo]:
    """Create a superproject with submodules."""
    return git_forest(tmp_path)
