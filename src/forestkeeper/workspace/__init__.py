"""Workspace model: which modules live in which checkout of the forest."""

from forestkeeper.workspace.cache import KeyedMemo
from forestkeeper.workspace.descriptor import discover_descriptors, parse_module, read_module
from forestkeeper.workspace.exceptions import DescriptorParseError, DiscoveryError
from forestkeeper.workspace.models import Module, ProjectFamily
from forestkeeper.workspace.scope import Scope
from forestkeeper.workspace.tree import WorkspaceModel, scan

__all__ = [
    "DescriptorParseError",
    "DiscoveryError",
    "KeyedMemo",
    "Module",
    "ProjectFamily",
    "Scope",
    "WorkspaceModel",
    "discover_descriptors",
    "parse_module",
    "read_module",
    "scan",
]
