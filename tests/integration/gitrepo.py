"""Helpers for driving real git repositories in integration tests."""

import subprocess
from pathlib import Path


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stdout."""
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout


def commit_file(repo: Path, relpath: str, content: str, message: str, push: bool = True) -> None:
    """Write, commit and optionally push a file as a human would."""
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", "--", relpath)
    git(repo, "commit", "--quiet", "-m", message)
    if push:
        git(repo, "push", "--quiet", "origin", "HEAD:refs/heads/main")


def remote_head(remote: Path) -> str:
    return git(remote, "rev-parse", "refs/heads/main").strip()


def remote_files_in_head(remote: Path) -> list[str]:
    output = git(remote, "diff-tree", "--no-commit-id", "--name-only", "-r", "--root", "main")
    return output.split()
