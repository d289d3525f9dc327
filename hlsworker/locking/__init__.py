from hlsworker.locking.lock_manager import LockManager
from hlsworker.locking.file_lock import ManagedFileLock

__all__ = ["LockManager", "ManagedFileLock"]
