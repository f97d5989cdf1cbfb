"""Exception types raised by the git collaborator and configuration layer.

The reconciler catches these and maps them to a ``ReconcileOutcome``; they
do not escape ``SandboxReconciler.reconcile``.
"""


class SandboxSyncError(Exception):
    """Base class for sandbox-sync errors."""

    pass


class ConfigurationError(SandboxSyncError):
    """Raised when configuration loading or validation fails."""

    pass


class InvalidWorkspaceError(ConfigurationError):
    """Raised when a workspace identifier is not a usable path component."""

    pass


class GitCommandError(SandboxSyncError):
    """Raised when a git command fails for a reason with no dedicated type."""

    def __init__(self, message: str, stderr: str = "") -> None:
        """Initialize with a message and the command's stderr.

        Args:
            message: Human readable description
            stderr: Captured standard error of the failing command

        """
        super().__init__(message)
        self.stderr = stderr


class RebaseConflictError(GitCommandError):
    """Local and remote history diverge in a way that needs a human."""


class PushRejectedError(GitCommandError):
    """The remote refused the push because it advanced since the last fetch."""


class RemoteUnavailableError(GitCommandError):
    """The remote could not be reached, authenticated against, or timed out."""


class ScopeViolationError(SandboxSyncError):
    """A commit would include paths outside the workspace's sandbox subtree."""

    def __init__(self, message: str, paths: list[str]) -> None:
        """Initialize with the offending paths.

        Args:
            message: Human readable description
            paths: Paths found outside the sandbox subtree

        """
        super().__init__(message)
        self.paths = paths


class ReconcilerBusyError(SandboxSyncError):
    """Another invocation for the same workspace holds the run lock."""

    pass
