class LockConfig:
    DEFAULT_TIMEOUT = 10.0
    OUTPUT_DIR_LOCK_NAME = ".hlsworker.lock"
    STORE_LOCK_SUFFIX = ".lock"
