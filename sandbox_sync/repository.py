"""Git collaborator used by the reconciler.

Wraps the handful of git primitives reconciliation needs (fetch, rebase,
status, stage, commit, push) and turns their failures into the distinct
exception types of ``sandbox_sync.errors``.
"""

import logging
import subprocess
from functools import cached_property
from pathlib import Path

from .errors import (
    GitCommandError,
    PushRejectedError,
    RebaseConflictError,
    RemoteUnavailableError,
)
from .git_utils import get_current_branch, get_git_dir, run
from .models import ChangeEntry, ChangeSet
from .retry import is_network_error

logger = logging.getLogger(__name__)

PUSH_REJECTED_MARKERS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "updates were rejected",
    "cannot lock ref",
    "failed to update ref",
)

# State files that mean a rebase or merge is waiting for a human
IN_PROGRESS_MARKERS = ("rebase-merge", "rebase-apply", "MERGE_HEAD")


def _split_nul(output: str) -> list[str]:
    return [item for item in output.split("\0") if item]


def parse_porcelain_status(output: str) -> ChangeSet:
    """Parse ``git status --porcelain=v1 -z --no-renames`` output.

    Args:
        output: Raw NUL-separated status output

    Returns:
        ChangeSet with one entry per path

    """
    entries = []
    for record in _split_nul(output):
        if len(record) < 4:
            logger.warning(f"Ignoring malformed status record: {record!r}")
            continue
        entries.append(ChangeEntry(code=record[:2], path=record[3:]))
    return ChangeSet(entries=entries)


class GitRepository:
    """The shared repository as seen from one workspace."""

    def __init__(
        self,
        repo_root: Path,
        remote: str = "origin",
        branch: str | None = None,
        timeout: int = 120,
    ):
        """Initialize the repository wrapper.

        Args:
            repo_root: Root of the working tree
            remote: Remote to fetch from and push to
            branch: Shared branch (default: the currently checked out branch)
            timeout: Timeout in seconds for commands that talk to the remote

        """
        self.repo_root = repo_root
        self.remote = remote
        self._branch = branch
        self.timeout = timeout

    @property
    def branch(self) -> str:
        """Shared branch name, detected from HEAD on first use."""
        if self._branch is None:
            self._branch = get_current_branch(self.repo_root)
        return self._branch

    @property
    def upstream(self) -> str:
        """Remote-tracking ref the workspace rebases onto."""
        return f"{self.remote}/{self.branch}"

    @cached_property
    def git_dir(self) -> Path:
        """Absolute git directory."""
        return get_git_dir(self.repo_root)

    def _git(self, *args: str, timeout: int | None = None) -> str:
        """Run a git command in the repository and return its stdout.

        Raises:
            GitCommandError: If the command exits non-zero

        """
        try:
            result = run(["git", *args], cwd=self.repo_root, timeout=timeout)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            command = next((arg for arg in args if not arg.startswith("-")), args[0])
            raise GitCommandError(f"git {command} failed: {stderr or e}", stderr=stderr) from e
        return result.stdout

    # -------------------------------------------------------------------------
    # Synchronization
    # -------------------------------------------------------------------------

    def fetch(self) -> None:
        """Fetch the shared branch from the remote.

        Raises:
            RemoteUnavailableError: If the remote cannot be reached or refuses us
            GitCommandError: If the fetch fails for another reason, e.g. a
                misconfigured remote or a branch the remote does not have

        """
        try:
            self._git("fetch", "--quiet", self.remote, self.branch, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RemoteUnavailableError(f"git fetch timed out after {self.timeout}s") from e
        except GitCommandError as e:
            if is_network_error(e.stderr):
                raise RemoteUnavailableError(
                    f"Could not fetch {self.upstream}: {e.stderr or e}", stderr=e.stderr
                ) from e
            raise
        logger.debug(f"Fetched {self.upstream}")

    def rebase(self) -> None:
        """Rebase local history onto the remote-tracking branch.

        Uncommitted changes are stashed and re-applied around the rebase. On
        conflict the repository is left exactly as git leaves it.

        Raises:
            RebaseConflictError: If the rebase or the stash re-apply conflicts
            GitCommandError: If the rebase fails for another reason

        """
        try:
            self._git("rebase", "--autostash", self.upstream)
        except GitCommandError as e:
            if self.is_conflicted():
                raise RebaseConflictError(
                    f"Rebase onto {self.upstream} stopped with conflicts", stderr=e.stderr
                ) from e
            raise

        if self.is_conflicted():
            raise RebaseConflictError(
                f"Re-applying local changes after rebase onto {self.upstream} conflicted"
            )
        logger.debug(f"Rebased onto {self.upstream}")

    def sync(self) -> None:
        """Fetch, then rebase onto the remote."""
        self.fetch()
        self.rebase()

    def push(self) -> None:
        """Push HEAD to the shared branch. Never forces.

        Raises:
            PushRejectedError: If the remote advanced since the last fetch
            RemoteUnavailableError: If the remote cannot be reached or refuses us
            GitCommandError: If the push fails for another reason

        """
        refspec = f"HEAD:refs/heads/{self.branch}"
        try:
            self._git("push", "--quiet", self.remote, refspec, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RemoteUnavailableError(f"git push timed out after {self.timeout}s") from e
        except GitCommandError as e:
            stderr = e.stderr.lower()
            if any(marker in stderr for marker in PUSH_REJECTED_MARKERS):
                raise PushRejectedError(
                    f"Push to {self.upstream} rejected: remote has advanced", stderr=e.stderr
                ) from e
            if is_network_error(stderr):
                raise RemoteUnavailableError(
                    f"Could not push to {self.upstream}: {e.stderr}", stderr=e.stderr
                ) from e
            raise
        logger.debug(f"Pushed HEAD to {self.upstream}")

    # -------------------------------------------------------------------------
    # Local state
    # -------------------------------------------------------------------------

    def status(self) -> ChangeSet:
        """Return every uncommitted change in the working tree and index."""
        output = self._git(
            "status", "--porcelain=v1", "-z", "--untracked-files=all", "--no-renames"
        )
        return parse_porcelain_status(output)

    def is_conflicted(self) -> bool:
        """Check for a rebase or merge in progress, or unmerged index entries.

        A run killed in the middle of its own rebase also leaves
        ``rebase-merge/`` behind, with no unmerged entries. That state is still
        reported as conflicted: it cannot be told apart from a human's half
        finished resolution, and aborting it automatically could throw that
        resolution away. ``git rebase --abort`` is safe in that case since
        local changes were autostashed.
        """
        args = [arg for marker in IN_PROGRESS_MARKERS for arg in ("--git-path", marker)]
        output = self._git("rev-parse", *args)
        for line in output.splitlines():
            marker = Path(line.strip())
            if not marker.is_absolute():
                marker = self.repo_root / marker
            if marker.exists():
                logger.debug(f"Found in-progress marker: {marker}")
                return True
        return self.status().has_conflicts

    def rebase_head_name(self) -> str | None:
        """Branch being rebased while a rebase is stopped, if any."""
        for marker in ("rebase-merge", "rebase-apply"):
            head_name = self.git_dir / marker / "head-name"
            if head_name.is_file():
                return head_name.read_text().strip().removeprefix("refs/heads/")
        return None

    def stage(self, paths: list[str]) -> None:
        """Stage exactly ``paths`` (additions, modifications and deletions)."""
        if not paths:
            return
        self._git("--literal-pathspecs", "add", "--all", "--", *paths)

    def commit(self, message: str, paths: list[str]) -> str:
        """Commit only ``paths``, ignoring anything else already staged.

        Args:
            message: Commit message
            paths: Paths to include; must already be staged

        Returns:
            SHA of the new commit

        """
        self._git("--literal-pathspecs", "commit", "--quiet", "--only", "-m", message, "--", *paths)
        return self.head()

    def undo_last_commit(self) -> None:
        """Drop HEAD, keeping its changes staged."""
        self._git("reset", "--soft", "HEAD~1")

    def head(self) -> str:
        """SHA of HEAD."""
        return self._git("rev-parse", "HEAD").strip()

    def head_paths(self) -> list[str]:
        """Paths touched by the HEAD commit."""
        output = self._git(
            "diff-tree", "--no-commit-id", "--name-only", "-r", "-z", "--no-renames", "--root", "HEAD"
        )
        return _split_nul(output)

    def unpushed_count(self) -> int:
        """Number of local commits not on the remote-tracking branch."""
        return int(self._git("rev-list", "--count", f"{self.upstream}..HEAD").strip() or 0)

    def unpushed_paths(self) -> list[str]:
        """Paths changed by local commits since the merge base with the remote."""
        output = self._git("diff", "--name-only", "-z", "--no-renames", f"{self.upstream}...HEAD")
        return _split_nul(output)
