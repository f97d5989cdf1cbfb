"""Fixtures that build a shared bare remote and per-workspace clones."""

import shutil
from pathlib import Path

import pytest
from gitrepo import git

from sandbox_sync.config import ReconcilerConfig


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    gitconfig = tmp_path / "gitconfig"
    gitconfig.write_text(
        "[user]\n\tname = Sandbox Test\n\temail = sandbox@example.com\n"
        "[commit]\n\tgpgsign = false\n"
        "[advice]\n\tdetachedHead = false\n"
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Sandbox Test")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "sandbox@example.com")


@pytest.fixture
def remote(tmp_path) -> Path:
    """Bare shared repository with library/ and two sandboxes."""
    bare = tmp_path / "remote.git"
    git(tmp_path, "init", "--quiet", "--bare", str(bare))
    git(bare, "symbolic-ref", "HEAD", "refs/heads/main")

    seed = tmp_path / "seed"
    git(tmp_path, "init", "--quiet", str(seed))
    git(seed, "symbolic-ref", "HEAD", "refs/heads/main")
    git(seed, "remote", "add", "origin", str(bare))
    (seed / "library").mkdir()
    (seed / "library" / "x.py").write_text("X = 1\n")
    for workspace in ("alice-machine", "bob-instance"):
        (seed / "sandbox" / workspace).mkdir(parents=True)
        (seed / "sandbox" / workspace / "notes.md").write_text(f"# {workspace}\n")
    git(seed, "add", "--all")
    git(seed, "commit", "--quiet", "-m", "Initial layout")
    git(seed, "push", "--quiet", "origin", "main")
    return bare


@pytest.fixture
def clone(tmp_path, remote):
    """Factory creating a fresh clone of the shared repository."""

    def make(name: str) -> Path:
        path = tmp_path / name
        git(tmp_path, "clone", "--quiet", "-b", "main", str(remote), str(path))
        return path

    return make


@pytest.fixture
def make_config():
    """Factory for reconciler configs without backoff delays."""

    def make(repo_root: Path, workspace: str, **kwargs) -> ReconcilerConfig:
        return ReconcilerConfig(repo_root=repo_root, workspace=workspace, retry_delay=0, **kwargs)

    return make
