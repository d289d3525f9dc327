import logging
from pathlib import Path
from typing import Optional, ContextManager

from hlsworker.config.lock_config import LockConfig
from hlsworker.locking.file_lock import ManagedFileLock

log = logging.getLogger(__name__)


class LockManager:
    """
    Factory for the two locks the worker takes: one per transcode output
    directory and one per JSON store write.
    """

    @staticmethod
    def acquire_output_dir_lock(
            output_dir: Path,
            timeout: Optional[float] = None
    ) -> ContextManager[ManagedFileLock]:
        """
        Lock a video's output directory for one transcode job. The directory is
        created when missing so the lock file has somewhere to live.

        Usage:
            with LockManager.acquire_output_dir_lock(videos_root / public_id):
                # encode, derive posters, build metadata
                pass
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        lock_path = output_dir / LockConfig.OUTPUT_DIR_LOCK_NAME

        log.debug(f"Requesting output directory lock: {lock_path}")
        return ManagedFileLock(
            lock_file_path=lock_path,
            timeout=timeout or LockConfig.DEFAULT_TIMEOUT,
            resource=f"output directory {output_dir.name}",
        )

    @staticmethod
    def acquire_store_lock(
            store_file_path: Path,
            timeout: Optional[float] = None
    ) -> ContextManager[ManagedFileLock]:
        """Lock one load-modify-save cycle of a JSON store document."""
        return ManagedFileLock(
            lock_file_path=store_file_path.with_name(store_file_path.name + LockConfig.STORE_LOCK_SUFFIX),
            timeout=timeout or LockConfig.DEFAULT_TIMEOUT,
            resource=f"store {store_file_path.name}",
        )
