"""Pydantic models for sandbox-sync configuration.

This module defines the configuration schema handed to the reconciler at
construction. Nothing in it reads the environment; ambient values (hostname,
current directory) are resolved by the caller.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import InvalidWorkspaceError
from ..workspace import DEFAULT_SANDBOX_DIR, sandbox_prefix, validate_workspace_id

DEFAULT_COMMIT_MESSAGE = "Auto-commit {workspace} {timestamp}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize and check the level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown logging level: {v}")
        return level


class ReconcilerConfig(BaseModel):
    """Everything one reconciler invocation needs to know."""

    model_config = ConfigDict(extra="forbid")

    repo_root: Path
    workspace: str
    sandbox_dir: str = Field(default=DEFAULT_SANDBOX_DIR)
    remote: str = Field(default="origin", min_length=1)
    branch: str | None = Field(default=None, description="None means the current branch")

    # Push contention
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=1.0, ge=0.0)
    backoff_factor: float = Field(default=2.0, ge=1.0)

    git_timeout: int = Field(default=120, ge=1, description="Seconds per network git command")
    commit_message: str = Field(default=DEFAULT_COMMIT_MESSAGE)

    # Recovery after killed runs; None disables stale git lock cleanup
    lock_stale_seconds: int = Field(default=4 * 3600, ge=1)
    stale_git_lock_seconds: int | None = Field(default=3600, ge=1)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("workspace")
    @classmethod
    def validate_workspace(cls, v: str) -> str:
        """Check the workspace is a single path component."""
        try:
            return validate_workspace_id(v)
        except InvalidWorkspaceError as e:
            raise ValueError(str(e)) from e

    @field_validator("sandbox_dir")
    @classmethod
    def validate_sandbox_dir(cls, v: str) -> str:
        """Reject absolute and parent-relative sandbox directories."""
        if v.startswith("/") or ".." in v.split("/"):
            raise ValueError(f"sandbox_dir must be relative to the repository root: {v}")
        return v.strip("/")

    @field_validator("commit_message")
    @classmethod
    def validate_commit_message(cls, v: str) -> str:
        """Check the template only uses known fields."""
        try:
            v.format(workspace="w", timestamp="t")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid commit_message template {v!r}: {e}") from e
        return v

    @property
    def sandbox_prefix(self) -> str:
        """Repository-relative subtree prefix, e.g. ``sandbox/alice-machine/``."""
        return sandbox_prefix(self.workspace, self.sandbox_dir)

    @property
    def sandbox_path(self) -> Path:
        """Absolute path of the workspace's subtree."""
        return self.repo_root / self.sandbox_prefix
