import logging

from hlsworker import file_utils
from hlsworker.config.app_config import AppConfig
from hlsworker.os_resources.os_resources_utils import PRIORITY_LEVELS

log = logging.getLogger(__name__)


class ConfigValidator:
    @staticmethod
    def validate(config: AppConfig) -> None:
        if not file_utils.check_directory_exists(config.videos_root):
            log.warning(f"Videos root does not exist: {config.videos_root}. Will create it.")
            config.videos_root.mkdir(parents=True, exist_ok=True)
        if not file_utils.check_directory_exists(config.data_dir):
            log.warning(f"Data directory does not exist: {config.data_dir}. Will create it.")
            config.data_dir.mkdir(parents=True, exist_ok=True)
        if not config.encoder_command:
            raise ValueError("Encoder command must not be empty.")
        if config.encoder_process_priority not in PRIORITY_LEVELS:
            raise ValueError("Invalid encoder process priority in configuration.")
        if config.worker_concurrency < 1:
            raise ValueError("Worker concurrency must be a positive integer.")
        if config.worker_concurrency > 1:
            log.warning("Worker concurrency is %d. Each job still owns its output directory exclusively.",
                        config.worker_concurrency)
        if config.probe_timeout_seconds <= 0:
            raise ValueError("Invalid probe timeout in configuration. Expected: probe_timeout_seconds > 0.")
        if config.lock_timeout_seconds <= 0:
            raise ValueError("Invalid lock timeout in configuration. Expected: lock_timeout_seconds > 0.")
        if config.poster_workers < 1:
            log.warning("Poster workers is lower than 1. Setting to default value of 5.")
            config.poster_workers = 5
        if not 0 < config.redis_port < 65536:
            raise ValueError("Invalid Redis port in configuration. Expected: 0 < redis_port < 65536.")
