"""Workspace identifier detection and sandbox path helpers."""

import functools
import logging
import socket

from .errors import InvalidWorkspaceError

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_DIR = "sandbox"


def validate_workspace_id(workspace: str) -> str:
    """Check that a workspace identifier is a single valid path component.

    Args:
        workspace: Candidate identifier

    Returns:
        The identifier, unchanged

    Raises:
        InvalidWorkspaceError: If the identifier is empty, contains a path
            separator or NUL, or is a relative path marker

    """
    if not workspace or not workspace.strip():
        raise InvalidWorkspaceError("Workspace identifier must not be empty")
    if workspace != workspace.strip():
        raise InvalidWorkspaceError(
            f"Workspace identifier has surrounding whitespace: {workspace!r}"
        )
    if workspace in (".", ".."):
        raise InvalidWorkspaceError(f"Workspace identifier is not a directory name: {workspace!r}")
    for forbidden in ("/", "\\", "\0"):
        if forbidden in workspace:
            raise InvalidWorkspaceError(
                f"Workspace identifier contains a forbidden character: {workspace!r}"
            )
    return workspace


@functools.lru_cache(maxsize=1)
def detect_workspace_id() -> str:
    """Derive the workspace identifier from this machine's hostname.

    The result is cached for the lifetime of the process.

    Returns:
        Validated workspace identifier

    Raises:
        InvalidWorkspaceError: If the hostname is not a valid identifier

    """
    hostname = socket.gethostname()
    logger.debug(f"Detected hostname: {hostname}")
    return validate_workspace_id(hostname)


def sandbox_prefix(workspace: str, sandbox_dir: str = DEFAULT_SANDBOX_DIR) -> str:
    """Repository-relative prefix of a workspace's subtree, with trailing slash."""
    base = sandbox_dir.strip("/")
    return f"{base}/{workspace}/" if base else f"{workspace}/"


def is_within(path: str, prefix: str) -> bool:
    """Check whether a repository-relative path lies inside ``prefix``.

    Args:
        path: Path relative to the repository root, ``/`` separated
        prefix: Subtree prefix ending in ``/``

    Returns:
        True if ``path`` is the subtree root or below it

    """
    if path.startswith("./"):
        path = path[2:]
    if ".." in path.split("/"):
        return False
    return path == prefix.rstrip("/") or path.startswith(prefix)
