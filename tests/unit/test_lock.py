"""Tests for the per-workspace run lock."""

import os
import time

import pytest

from sandbox_sync.errors import ReconcilerBusyError
from sandbox_sync.lock import RunLock


class TestRunLock:
    """Tests for RunLock class."""

    def test_acquire_and_release(self, tmp_path):
        """Test the lock file exists only while held."""
        path = tmp_path / "run.lock"

        with RunLock(path) as lock:
            assert lock.held
            assert path.exists()
            assert path.read_text().split()[0] == str(os.getpid())

        assert not path.exists()

    def test_second_holder_is_busy(self, tmp_path):
        """Test a live lock cannot be taken twice."""
        path = tmp_path / "run.lock"

        with RunLock(path):
            with pytest.raises(ReconcilerBusyError):
                RunLock(path).acquire()

    def test_dead_owner_is_stale(self, tmp_path):
        """Test a lock from a process that no longer exists is replaced."""
        path = tmp_path / "run.lock"
        path.write_text(f"999999999 {int(time.time())}\n")

        with RunLock(path) as lock:
            assert lock.held
            assert path.read_text().split()[0] == str(os.getpid())

    def test_old_lock_is_stale(self, tmp_path):
        """Test a lock older than stale_after is replaced even if its pid is alive."""
        path = tmp_path / "run.lock"
        path.write_text(f"{os.getpid()} 0\n")
        past = time.time() - 7200
        os.utime(path, (past, past))

        with RunLock(path, stale_after=3600) as lock:
            assert lock.held

    def test_release_is_idempotent(self, tmp_path):
        """Test releasing an unheld lock does nothing."""
        path = tmp_path / "run.lock"
        lock = RunLock(path)

        lock.release()
        lock.acquire()
        lock.release()
        lock.release()

        assert not path.exists()

    def test_release_on_exception(self, tmp_path):
        """Test the lock is dropped when the body raises."""
        path = tmp_path / "run.lock"

        with pytest.raises(ValueError):
            with RunLock(path):
                raise ValueError("boom")

        assert not path.exists()
