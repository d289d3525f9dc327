import logging
import time
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout, BaseFileLock

log = logging.getLogger(__name__)


class ManagedFileLock:
    """
    Exclusive filelock.FileLock held for the duration of a `with` block.

    `resource` names what the lock protects and only appears in log messages.
    The lock file is left in place after release.
    """

    def __init__(self, lock_file_path: Path, timeout: float, resource: Optional[str] = None):
        self.lock_file_path = lock_file_path
        self.timeout = timeout
        self.resource = resource or lock_file_path.name
        self._lock: Optional[BaseFileLock] = None
        self._acquired_at: Optional[float] = None

    def acquire(self) -> None:
        """
        Raises:
            Timeout: another holder kept the lock longer than `timeout` seconds
        """
        self._lock = FileLock(self.lock_file_path, timeout=self.timeout)
        wait_start = time.perf_counter()
        try:
            self._lock.acquire()
        except Timeout:
            log.error("Lock not acquired.")
            log.error("|-Resource: %s", self.resource)
            log.error("|-Waited: %.1f seconds", self.timeout)
            raise

        self._acquired_at = time.perf_counter()
        log.debug(f"Locked {self.resource} after {self._acquired_at - wait_start:.3f}s")

    def release(self) -> None:
        if not self.is_locked():
            return
        self._lock.release()
        held_seconds = time.perf_counter() - self._acquired_at if self._acquired_at else 0.0
        log.debug(f"Unlocked {self.resource} after {held_seconds:.3f}s")

    def is_locked(self) -> bool:
        return self._lock is not None and self._lock.is_locked

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
