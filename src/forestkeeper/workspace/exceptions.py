"""Workspace-related exceptions."""


class DiscoveryError(Exception):
    """Base exception for errors while scanning the checkout forest."""


class DescriptorParseError(DiscoveryError):
    """A module descriptor could not be read or lacks its coordinates."""
