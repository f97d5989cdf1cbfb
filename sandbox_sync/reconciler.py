"""Sandbox reconciler.

One invocation synchronizes one workspace's subtree with the remote:

    IDLE -> SYNCING -> CLEAN_EXIT
                    -> COMMITTING -> PUSHING -> DONE
                                             -> RETRY -> SYNCING
                                             -> FAILED
                    -> CONFLICT

Paths outside ``<sandbox_dir>/<workspace>/`` are never staged, committed or
pushed by this module. Push contention is retried with a fresh rebase a
bounded number of times; a conflict stops everything and is left for a human.
"""

import logging
import subprocess
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from .config import ReconcilerConfig
from .errors import (
    GitCommandError,
    PushRejectedError,
    RebaseConflictError,
    ReconcilerBusyError,
    RemoteUnavailableError,
    ScopeViolationError,
)
from .git_utils import clean_stale_git_locks
from .lock import RunLock
from .models import (
    ChangeSet,
    ReconcileOutcome,
    ReconcileResult,
    ReconcilerState,
    SandboxStatus,
)
from .repository import GitRepository
from .retry import retry_with_backoff
from .workspace import is_within

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SandboxReconciler:
    """Synchronize one workspace's sandbox subtree with the shared remote.

    Example:
        config = ConfigLoader(repo_root).load(workspace="alice-machine")
        result = SandboxReconciler(config).reconcile()
        sys.exit(result.exit_code)

    """

    def __init__(
        self,
        config: ReconcilerConfig,
        repository: GitRepository | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the reconciler.

        Args:
            config: Workspace, repository and retry settings
            repository: Git collaborator (default: built from ``config``)
            clock: Source of commit timestamps

        """
        self.config = config
        self.repository = repository or GitRepository(
            config.repo_root,
            remote=config.remote,
            branch=config.branch,
            timeout=config.git_timeout,
        )
        self.clock = clock
        self.prefix = config.sandbox_prefix

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def reconcile(self) -> ReconcileResult:
        """Run one invocation.

        Never raises for git or remote failures; the outcome is reported on
        the returned result instead.

        Returns:
            ReconcileResult with the terminal outcome and state history

        """
        result = ReconcileResult(workspace=self.config.workspace)
        logger.info(f"Reconciling {self.prefix} in {self.config.repo_root}")

        try:
            with RunLock(self._lock_path(), stale_after=self.config.lock_stale_seconds):
                self._clean_stale_git_locks()
                if self.repository.is_conflicted():
                    raise RebaseConflictError(
                        "Repository has an unresolved rebase or merge from an earlier run"
                    )
                self._run_with_retry(result)
        except ReconcilerBusyError as e:
            self._fail(result, ReconcileOutcome.BUSY, e, level=logging.WARNING)
        except RebaseConflictError as e:
            result.states.append(ReconcilerState.CONFLICT)
            result.outcome = ReconcileOutcome.CONFLICT
            result.error = str(e)
            logger.error(
                f"{e}. Resolve it by hand in {self.config.repo_root} "
                "(git status; then git rebase --continue or git rebase --abort); "
                "auto-commits are suspended until then. If no files are unmerged, "
                "an earlier run was likely killed mid-rebase and git rebase --abort "
                "is safe"
            )
        except PushRejectedError as e:
            self._fail(result, ReconcileOutcome.PUSH_REJECTED, e)
        except RemoteUnavailableError as e:
            self._fail(result, ReconcileOutcome.UNAVAILABLE, e, level=logging.WARNING)
        except ScopeViolationError as e:
            self._fail(result, ReconcileOutcome.SCOPE_VIOLATION, e)
        except (GitCommandError, RuntimeError, OSError, subprocess.SubprocessError) as e:
            self._fail(result, ReconcileOutcome.ERROR, e)

        result.completed_at = _utcnow()
        if result.success:
            logger.info(result.summary())
        return result

    def status(self) -> SandboxStatus:
        """Report pending work without fetching or changing anything.

        Works while a rebase is stopped on a conflict, when HEAD is detached.
        """
        conflicted = self.repository.is_conflicted()
        changes, ignored = self.repository.status().partition(self.prefix)
        try:
            branch = self.repository.branch
        except RuntimeError:
            branch = self.repository.rebase_head_name() or "(rebase in progress)"
        try:
            unpushed = self.repository.unpushed_count()
        except (GitCommandError, RuntimeError) as e:
            logger.debug(f"Could not count unpushed commits: {e}")
            unpushed = 0
        return SandboxStatus(
            workspace=self.config.workspace,
            sandbox_path=str(self.config.sandbox_path),
            branch=branch,
            pending=changes.paths,
            ignored=ignored.paths,
            unpushed_commits=unpushed,
            conflicted=conflicted,
        )

    # -------------------------------------------------------------------------
    # Invocation steps
    # -------------------------------------------------------------------------

    def _run_with_retry(self, result: ReconcileResult) -> None:
        attempt = retry_with_backoff(
            max_retries=self.config.max_attempts - 1,
            initial_delay=self.config.retry_delay,
            backoff_factor=self.config.backoff_factor,
            retry_on=(PushRejectedError,),
            logger=logger.warning,
        )(self._attempt)
        attempt(result)

    def _attempt(self, result: ReconcileResult) -> None:
        result.attempts += 1
        if result.attempts > 1:
            self._transition(result, ReconcilerState.RETRY)

        self._transition(result, ReconcilerState.SYNCING)
        self.repository.sync()

        changes, ignored = self.repository.status().partition(self.prefix)
        result.ignored_paths = ignored.paths
        if ignored.paths:
            logger.debug(f"Ignoring {len(ignored.paths)} change(s) outside {self.prefix}")

        if not changes.is_empty():
            self._transition(result, ReconcilerState.COMMITTING)
            self._commit(result, changes)

        if self.repository.unpushed_count() == 0:
            self._transition(result, ReconcilerState.CLEAN_EXIT)
            result.outcome = ReconcileOutcome.NOOP
            return

        self._check_unpushed_scope()
        self._transition(result, ReconcilerState.PUSHING)
        self.repository.push()
        self._transition(result, ReconcilerState.DONE)
        result.outcome = ReconcileOutcome.PUSHED

    def _commit(self, result: ReconcileResult, changes: ChangeSet) -> None:
        paths = changes.paths
        self.repository.stage(paths)
        message = self.config.commit_message.format(
            workspace=self.config.workspace,
            timestamp=self.clock().strftime(TIMESTAMP_FORMAT),
        )
        sha = self.repository.commit(message, paths)

        committed = self.repository.head_paths()
        outside = [p for p in committed if not is_within(p, self.prefix)]
        if outside:
            self.repository.undo_last_commit()
            raise ScopeViolationError(
                f"Commit {sha[:12]} touched {len(outside)} path(s) outside {self.prefix}; undone",
                outside,
            )

        result.commit = sha
        result.committed_paths.extend(p for p in committed if p not in result.committed_paths)
        logger.info(f"Committed {len(committed)} path(s) as {sha[:12]}")

    def _check_unpushed_scope(self) -> None:
        outside = [p for p in self.repository.unpushed_paths() if not is_within(p, self.prefix)]
        if outside:
            raise ScopeViolationError(
                f"Unpushed local commits touch {len(outside)} path(s) outside {self.prefix}; "
                "refusing to push",
                outside,
            )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _lock_path(self) -> Path:
        return self.repository.git_dir / f"sandbox-sync-{self.config.workspace}.lock"

    def _clean_stale_git_locks(self) -> None:
        if self.config.stale_git_lock_seconds is None:
            return
        clean_stale_git_locks(self.repository.git_dir, self.config.stale_git_lock_seconds)

    def _transition(self, result: ReconcileResult, state: ReconcilerState) -> None:
        logger.debug(f"{result.state.value} -> {state.value}")
        result.states.append(state)

    def _fail(
        self,
        result: ReconcileResult,
        outcome: ReconcileOutcome,
        error: Exception,
        level: int = logging.ERROR,
    ) -> None:
        if outcome is not ReconcileOutcome.BUSY:
            result.states.append(ReconcilerState.FAILED)
        result.outcome = outcome
        result.error = str(error)
        logger.log(level, f"[{self.config.workspace}] {outcome.value}: {error}")
