import logging

log = logging.getLogger(__name__)

from pathlib import Path


def check_file_exists(file_path: Path) -> bool:
    return file_path.is_file()


def check_directory_exists(dir_path: Path) -> bool:
    return dir_path.is_dir()


def get_file_size_bytes(file_path: Path) -> int:
    """
    Size of a regular file in bytes.

    Missing, unreadable or non-regular paths count as zero so that aggregate
    statistics degrade instead of failing.
    """
    try:
        if not file_path.is_file():
            log.debug(f"File not found for size calculation: {file_path}")
            return 0
        return file_path.stat().st_size
    except OSError as e:
        log.warning(f"Failed to access file {file_path}: {e}")
        return 0


def read_lines(file_path: Path) -> list[str]:
    return file_path.read_text(encoding="utf-8").splitlines()
