"""Per-workspace run lock.

The scheduler may start a new invocation while a slow one is still running;
the lock makes the second one back off instead of racing the first inside
the same working tree.
"""

import logging
import os
import time
from pathlib import Path
from types import TracebackType

from .errors import ReconcilerBusyError

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class RunLock:
    """Exclusive lock file created with O_EXCL.

    A lock whose owner process is gone, or that is older than
    ``stale_after`` seconds, is assumed to belong to a killed run and is
    replaced.
    """

    def __init__(self, path: Path, stale_after: float = 4 * 3600):
        """Initialize the lock.

        Args:
            path: Lock file location
            stale_after: Age in seconds after which an existing lock is ignored

        """
        self.path = path
        self.stale_after = stale_after
        self.held = False

    def _is_stale(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
            content = self.path.read_text().split()
        except FileNotFoundError:
            return True
        if age > self.stale_after:
            return True
        if content and content[0].isdigit():
            return not _pid_alive(int(content[0]))
        return False

    def _create(self) -> None:
        fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()} {int(time.time())}\n")

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            ReconcilerBusyError: If a live invocation already holds it

        """
        try:
            self._create()
        except FileExistsError:
            if not self._is_stale():
                raise ReconcilerBusyError(f"Another invocation holds {self.path}")
            logger.warning(f"Replacing stale run lock: {self.path}")
            self.path.unlink(missing_ok=True)
            try:
                self._create()
            except FileExistsError:
                raise ReconcilerBusyError(f"Another invocation holds {self.path}")
        self.held = True
        logger.debug(f"Acquired run lock {self.path}")

    def release(self) -> None:
        """Drop the lock if this instance holds it."""
        if self.held:
            self.path.unlink(missing_ok=True)
            self.held = False
            logger.debug(f"Released run lock {self.path}")

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
