import logging
import os
import threading
import tomllib
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv, find_dotenv
from pydantic import BaseModel

from hlsworker import file_utils

log = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent.parent


# Default values can be overridden in app_config.toml and by environment variables
class AppConfig(BaseModel):
    app_name: str
    app_version: str

    videos_root: Path
    data_dir: Path
    logs_dir: Path = Path("./logs")

    encoder_command: list[str] = ["./scripts/transcode.sh"]
    encoder_process_priority: str = "normal"
    ffprobe_path: str = "ffprobe"
    probe_timeout_seconds: float = 30

    worker_concurrency: int = 1
    queue_name: str = "transcode"
    redis_host: str = "localhost"
    redis_port: int = 6379
    broker_url: Optional[str] = None
    result_backend: Optional[str] = None

    lock_timeout_seconds: float = 10
    poster_workers: int = 5

    def effective_broker_url(self) -> str:
        return self.broker_url or f"redis://{self.redis_host}:{self.redis_port}/0"

    def effective_result_backend(self) -> str:
        return self.result_backend or f"redis://{self.redis_host}:{self.redis_port}/1"


class ConfigManager:
    _instance: Optional[AppConfig] = None
    _lock = threading.Lock()

    def __init__(self):
        raise RuntimeError("Constructor is not allowed. Use get_config() method.")

    @classmethod
    def get_config(cls) -> AppConfig:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    config = ConfigManager.load_config()
                    # Local import: the validator module imports AppConfig from here
                    from hlsworker.config.config_validator import ConfigValidator
                    ConfigValidator.validate(config)
                    cls._instance = config
        return cls._instance

    @staticmethod
    def load_config() -> AppConfig:
        pyproject_file = BASE_DIR / "pyproject.toml"
        config_file = BASE_DIR / "app_config.toml"

        if not file_utils.check_file_exists(pyproject_file):
            raise FileNotFoundError("pyproject.toml not found. Expected location: {}".format(pyproject_file))

        if not file_utils.check_file_exists(config_file):
            raise FileNotFoundError("app_config.toml not found. Expected location: {}".format(config_file))

        with pyproject_file.open("rb") as f:
            pyproject_data = tomllib.load(f)

        project = pyproject_data.get("project")

        with config_file.open("rb") as f:
            conf_data = tomllib.load(f)

        parameters = conf_data.get("params", {})
        parameters.update(_load_env_overrides())

        return AppConfig(
            app_name=project.get("name"),
            app_version=project.get("version"),
            **parameters
        )


def _load_env_overrides() -> dict:
    load_dotenv(find_dotenv(usecwd=True))

    overrides = {}
    if os.getenv("REDIS_HOST"):
        overrides["redis_host"] = os.getenv("REDIS_HOST")
    if os.getenv("REDIS_PORT"):
        overrides["redis_port"] = int(os.getenv("REDIS_PORT"))
    if os.getenv("HLSWORKER_VIDEOS_ROOT"):
        overrides["videos_root"] = os.getenv("HLSWORKER_VIDEOS_ROOT")
    if os.getenv("HLSWORKER_DATA_DIR"):
        overrides["data_dir"] = os.getenv("HLSWORKER_DATA_DIR")
    if os.getenv("HLSWORKER_WORKER_CONCURRENCY"):
        overrides["worker_concurrency"] = int(os.getenv("HLSWORKER_WORKER_CONCURRENCY"))

    if overrides:
        log.info("Applied environment overrides: %s", ", ".join(sorted(overrides)))
    return overrides
