"""Pydantic models for reconciliation.

Defines data structures for:
- Change sets reported by ``git status``
- Reconciler states and terminal outcomes
- Per-invocation results and read-only status reports
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .workspace import is_within

UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


class ChangeEntry(BaseModel):
    """One path from ``git status --porcelain``."""

    path: str
    code: str = Field(description="Two-letter XY status code, e.g. ' M', '??', 'D '")

    @property
    def is_unmerged(self) -> bool:
        """Whether the entry is an unresolved merge conflict."""
        return self.code in UNMERGED_CODES


class ChangeSet(BaseModel):
    """Paths with uncommitted changes at a point in time."""

    entries: list[ChangeEntry] = Field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        """Paths in the change set, in status order."""
        return [entry.path for entry in self.entries]

    @property
    def has_conflicts(self) -> bool:
        """Whether any entry is unmerged."""
        return any(entry.is_unmerged for entry in self.entries)

    def is_empty(self) -> bool:
        """Whether there are no changes."""
        return not self.entries

    def partition(self, prefix: str) -> tuple[ChangeSet, ChangeSet]:
        """Split into entries inside and outside a subtree.

        Args:
            prefix: Subtree prefix ending in ``/``

        Returns:
            Tuple of (inside, outside) change sets

        """
        inside = [e for e in self.entries if is_within(e.path, prefix)]
        outside = [e for e in self.entries if not is_within(e.path, prefix)]
        return ChangeSet(entries=inside), ChangeSet(entries=outside)


class ReconcilerState(str, Enum):
    """Phase of one reconciler invocation."""

    IDLE = "idle"
    SYNCING = "syncing"
    CLEAN_EXIT = "clean_exit"
    COMMITTING = "committing"
    PUSHING = "pushing"
    RETRY = "retry"
    DONE = "done"
    FAILED = "failed"
    CONFLICT = "conflict"


class ReconcileOutcome(str, Enum):
    """Terminal outcome of one invocation."""

    NOOP = "noop"
    PUSHED = "pushed"
    CONFLICT = "conflict"
    PUSH_REJECTED = "push_rejected"
    UNAVAILABLE = "unavailable"
    SCOPE_VIOLATION = "scope_violation"
    BUSY = "busy"
    ERROR = "error"

    @property
    def exit_code(self) -> int:
        """Process exit code for the scheduler."""
        return EXIT_CODES[self]

    @property
    def is_success(self) -> bool:
        """Whether the outcome counts as normal completion."""
        return self in (ReconcileOutcome.NOOP, ReconcileOutcome.PUSHED)


EXIT_CODES: dict[ReconcileOutcome, int] = {
    ReconcileOutcome.NOOP: 0,
    ReconcileOutcome.PUSHED: 0,
    ReconcileOutcome.ERROR: 1,
    ReconcileOutcome.CONFLICT: 2,
    ReconcileOutcome.PUSH_REJECTED: 3,
    ReconcileOutcome.UNAVAILABLE: 4,
    ReconcileOutcome.SCOPE_VIOLATION: 5,
    ReconcileOutcome.BUSY: 6,
}


class ReconcileResult(BaseModel):
    """Result of one reconciler invocation."""

    workspace: str
    outcome: ReconcileOutcome = ReconcileOutcome.NOOP
    states: list[ReconcilerState] = Field(default_factory=lambda: [ReconcilerState.IDLE])
    attempts: int = 0
    commit: str | None = None
    committed_paths: list[str] = Field(default_factory=list)
    ignored_paths: list[str] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def state(self) -> ReconcilerState:
        """Most recent state."""
        return self.states[-1]

    @property
    def success(self) -> bool:
        """Whether the invocation completed normally."""
        return self.outcome.is_success

    @property
    def exit_code(self) -> int:
        """Process exit code for the scheduler."""
        return self.outcome.exit_code

    def summary(self) -> str:
        """One-line description suitable for cron mail or logs."""
        text = f"[{self.workspace}] {self.outcome.value}"
        if self.committed_paths:
            text += f": committed {len(self.committed_paths)} path(s)"
        if self.commit:
            text += f" as {self.commit[:12]}"
        if self.attempts > 1:
            text += f" after {self.attempts} attempts"
        if self.error:
            text += f" ({self.error})"
        return text


class SandboxStatus(BaseModel):
    """Read-only view of a workspace's pending work."""

    workspace: str
    sandbox_path: str
    branch: str
    pending: list[str] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)
    unpushed_commits: int = 0
    conflicted: bool = False
