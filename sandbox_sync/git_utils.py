"""Git utility functions for repository operations.

Provides helpers for:
- Running git with consistent error handling
- Repository root, git directory and branch discovery
- Stale git lock cleanup after killed invocations
"""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import cast

logger = logging.getLogger(__name__)

# Never let git block waiting for a password or an editor under cron
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_EDITOR": "true",
    "GIT_MERGE_AUTOEDIT": "no",
}


def run(
    cmd: list[str],
    cwd: Path | None = None,
    capture_output: bool = True,
    check: bool = True,
    timeout: int | None = None,
) -> subprocess.CompletedProcess:
    """Run a subprocess command with consistent error handling.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory (defaults to current)
        capture_output: Whether to capture stdout/stderr
        check: Whether to raise on non-zero exit
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess instance

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded

    """
    logger.debug(f"Running command: {' '.join(cmd)}")
    return subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=capture_output,
        text=True,
        check=check,
        timeout=timeout,
        stdin=subprocess.DEVNULL,
        env={**os.environ, **GIT_ENV},
    )


def get_repo_root(start_path: Path | None = None) -> Path:
    """Find the git repository root directory.

    Args:
        start_path: Starting path for search (defaults to cwd)

    Returns:
        Path to repository root

    Raises:
        RuntimeError: If not in a git repository

    """
    if start_path is None:
        start_path = Path.cwd()

    try:
        result = run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=start_path,
            capture_output=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RuntimeError(f"Not in a git repository: {e}") from e


def get_git_dir(repo_root: Path) -> Path:
    """Get the absolute git directory of a repository.

    Args:
        repo_root: Repository root

    Returns:
        Path to the git directory (``.git`` for ordinary clones)

    Raises:
        RuntimeError: If the git directory cannot be determined

    """
    try:
        result = run(
            ["git", "rev-parse", "--absolute-git-dir"],
            cwd=repo_root,
            capture_output=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"Failed to locate git directory: {e}") from e


def get_current_branch(repo_root: Path | None = None) -> str:
    """Get the current git branch name.

    Args:
        repo_root: Repository root (defaults to auto-detect)

    Returns:
        Branch name

    Raises:
        RuntimeError: If unable to determine branch or HEAD is detached

    """
    if repo_root is None:
        repo_root = get_repo_root()

    try:
        result = run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=repo_root,
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"Failed to get current branch: {e}") from e

    branch = cast(str, result.stdout.strip())
    if branch == "HEAD":
        raise RuntimeError("HEAD is detached; check out the shared branch first")
    return branch


def clean_stale_git_locks(git_dir: Path, older_than: float) -> list[Path]:
    """Remove git lock files left behind by a killed process.

    Only locks whose modification time is older than ``older_than`` seconds
    are removed, so a git command that is still running keeps its lock.

    Args:
        git_dir: Repository git directory
        older_than: Minimum lock age in seconds

    Returns:
        Lock files that were removed

    """
    candidates = [git_dir / "index.lock", git_dir / "HEAD.lock"]
    heads_dir = git_dir / "refs" / "heads"
    if heads_dir.exists():
        candidates.extend(heads_dir.rglob("*.lock"))

    now = time.time()
    removed: list[Path] = []
    for lock_file in candidates:
        try:
            age = now - lock_file.stat().st_mtime
        except FileNotFoundError:
            continue
        if age < older_than:
            logger.debug(f"Leaving recent git lock in place: {lock_file} ({age:.0f}s old)")
            continue
        logger.warning(f"Removing stale git lock: {lock_file} ({age:.0f}s old)")
        try:
            lock_file.unlink()
            removed.append(lock_file)
        except OSError as e:
            logger.error(f"Failed to remove lock {lock_file}: {e}")
    return removed
