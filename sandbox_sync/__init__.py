"""sandbox-sync: periodic auto-commit of per-workspace sandbox folders.

Each machine owns ``sandbox/<workspace>/`` in a shared git repository. The
reconciler rebases onto the remote, commits only that subtree and pushes,
retrying on push contention and stopping for a human on conflicts.
"""

__version__ = "0.1.0"

from sandbox_sync.config import ConfigLoader, ReconcilerConfig
from sandbox_sync.models import (
    ChangeEntry,
    ChangeSet,
    ReconcileOutcome,
    ReconcileResult,
    ReconcilerState,
    SandboxStatus,
)
from sandbox_sync.reconciler import SandboxReconciler
from sandbox_sync.repository import GitRepository
from sandbox_sync.workspace import detect_workspace_id, validate_workspace_id

__all__ = [
    "__version__",
    # Main classes
    "SandboxReconciler",
    "GitRepository",
    "ConfigLoader",
    "ReconcilerConfig",
    # Data models
    "ChangeEntry",
    "ChangeSet",
    "ReconcileOutcome",
    "ReconcileResult",
    "ReconcilerState",
    "SandboxStatus",
    # Workspace identity
    "detect_workspace_id",
    "validate_workspace_id",
]
