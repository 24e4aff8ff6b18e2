"""VCS-related exceptions."""


class VCSError(Exception):
    """Base exception for VCS errors."""


class NotARepositoryError(VCSError):
    """Raised when a directory is not inside a git working tree."""


class VCSOperationError(VCSError):
    """Raised when a VCS operation fails."""


class RemoteOperationError(VCSOperationError):
    """Raised when an operation against a remote fails."""


class RemoteRefNotFoundError(RemoteOperationError):
    """Raised when a remote ref to be deleted no longer exists on the server."""


class LocalOperationError(VCSOperationError):
    """Raised when an operation on a local branch fails."""
