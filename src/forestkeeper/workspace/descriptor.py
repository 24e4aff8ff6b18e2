"""Discovery and parsing of module descriptor files (pom.xml)."""

import logging
import os
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from forestkeeper.workspace.exceptions import DescriptorParseError
from forestkeeper.workspace.models import Module

logger = logging.getLogger(__name__)

DESCRIPTOR_NAME = "pom.xml"

# Folders that never contain module descriptors we care about
SKIPPED_DIRS = frozenset({"target", "node_modules"})


def _should_descend(name: str) -> bool:
    return name not in SKIPPED_DIRS and not name.startswith(".")


def _walk(folder: Path) -> set[Path]:
    found: set[Path] = set()
    for dirpath, dirnames, filenames in os.walk(folder):
        dirnames[:] = [d for d in dirnames if _should_descend(d)]
        if DESCRIPTOR_NAME in filenames:
            found.add(Path(dirpath, DESCRIPTOR_NAME).resolve())
    return found


def discover_descriptors(root: Path, max_workers: int = 8) -> set[Path]:
    """Find every descriptor file below a folder.

    Each top-level subfolder is walked by its own worker.

    Args:
        root: Folder to search
        max_workers: Maximum number of folders walked concurrently

    Returns:
        Resolved paths of all descriptor files
    """
    root = Path(root).resolve()
    found: set[Path] = set()
    if (root / DESCRIPTOR_NAME).is_file():
        found.add(root / DESCRIPTOR_NAME)

    try:
        subfolders = [p for p in root.iterdir() if p.is_dir() and _should_descend(p.name)]
    except OSError as e:
        logger.warning(f"Unable to list {root}: {e}")
        return found

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for result in executor.map(_walk, subfolders):
            found.update(result)

    logger.debug(f"Found {len(found)} descriptors under {root}")
    return found


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def read_module(path: Path) -> Module:
    """Read a descriptor file.

    The group id and version are inherited from the `<parent>` section when the
    module does not declare them itself.

    Args:
        path: Path to a pom.xml

    Returns:
        The module

    Raises:
        DescriptorParseError: If the file cannot be parsed or lacks coordinates
    """
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        raise DescriptorParseError(f"Unable to parse {path}: {e}") from e

    if _local_name(root.tag) != "project":
        raise DescriptorParseError(f"{path} is not a project descriptor")

    parent = _child(root, "parent")
    group_id = _child_text(root, "groupId") or (parent is not None and _child_text(parent, "groupId")) or None
    artifact_id = _child_text(root, "artifactId")
    version = _child_text(root, "version") or (parent is not None and _child_text(parent, "version")) or None

    missing = [
        name
        for name, value in (("groupId", group_id), ("artifactId", artifact_id), ("version", version))
        if not value
    ]
    if missing:
        raise DescriptorParseError(f"{path} is missing {', '.join(missing)}")

    return Module(
        group_id=str(group_id),
        artifact_id=str(artifact_id),
        version=str(version),
        path=Path(path).resolve(),
    )


def parse_module(path: Path) -> Module | None:
    """Read a descriptor file, skipping it if it is unusable.

    Args:
        path: Path to a pom.xml

    Returns:
        The module, or None if the descriptor could not be parsed
    """
    try:
        return read_module(path)
    except DescriptorParseError as e:
        logger.warning(f"Skipping descriptor: {e}")
        return None
