import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from hlsworker import poster_deriver
from hlsworker.config.app_config import AppConfig, ConfigManager
from hlsworker.encoder import EncodeInvoker
from hlsworker.exceptions import ManifestMissing, PosterSourceMissing
from hlsworker.extractor.ffprobe_extractor import FfprobeRunner
from hlsworker.image_renditions import ImageRenditionService
from hlsworker.metadata_builder import MetadataBuilder
from hlsworker.notifications import LoggingNotifier
from hlsworker.orchestrator import JobOrchestrator
from hlsworker.persistence.json_repository import JsonMediaRepository
from hlsworker.queue import celery_app

log = logging.getLogger()


def configure_logging(logs_dir: Path) -> None:
    logs_dir.mkdir(parents=True, exist_ok=True)

    log.setLevel(logging.INFO)

    if log.hasHandlers():
        log.handlers.clear()

    logs_formatter = logging.Formatter('[%(asctime)s][%(levelname)s]: %(message)s')

    all_logs_handler = logging.FileHandler(logs_dir / "full.log", mode='a', encoding='utf-8')
    all_logs_handler.setLevel(logging.INFO)
    all_logs_handler.setFormatter(logs_formatter)
    log.addHandler(all_logs_handler)

    error_logs_handler = logging.FileHandler(logs_dir / "errors.log", mode='a', encoding='utf-8')
    error_logs_handler.setLevel(logging.ERROR)
    error_logs_handler.setFormatter(logs_formatter)
    log.addHandler(error_logs_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logs_formatter)
    log.addHandler(console_handler)


def build_orchestrator(app_config: AppConfig) -> JobOrchestrator:
    prober = FfprobeRunner(app_config.ffprobe_path, app_config.probe_timeout_seconds)
    return JobOrchestrator(
        repository=JsonMediaRepository(app_config.data_dir, lock_timeout=app_config.lock_timeout_seconds),
        notifier=LoggingNotifier(),
        encoder=EncodeInvoker(app_config.encoder_command, app_config.encoder_process_priority),
        metadata_builder=MetadataBuilder(prober),
        image_service=ImageRenditionService(max_workers=app_config.poster_workers),
        prober=prober,
        videos_root=app_config.videos_root,
        lock_timeout=app_config.lock_timeout_seconds,
    )


def run_worker(app_config: AppConfig) -> int:
    app = celery_app.create_celery_app(app_config)
    celery_app.register_transcode_task(app, build_orchestrator(app_config))

    log.info("Starting transcode worker...")
    log.info("|-Queue: %s", app_config.queue_name)
    log.info("|-Concurrency: %d", app_config.worker_concurrency)
    log.info("|-Videos root: %s", app_config.videos_root)

    app.worker_main(argv=[
        "worker",
        "--loglevel=INFO",
        f"--concurrency={app_config.worker_concurrency}",
        f"--queues={app_config.queue_name}",
    ])
    return 0


def run_metadata(app_config: AppConfig, output_dir: Path) -> int:
    builder = MetadataBuilder(FfprobeRunner(app_config.ffprobe_path, app_config.probe_timeout_seconds))
    try:
        metadata = builder.build(output_dir)
    except ManifestMissing as e:
        log.error(f"Could not build metadata: {e}")
        return 1

    print(metadata.model_dump_json(indent=4))
    return 0


def run_poster_override(app_config: AppConfig, source_image: Path, output_dir: Path) -> int:
    service = ImageRenditionService(max_workers=app_config.poster_workers)
    try:
        posters = poster_deriver.derive_override_posters(source_image, output_dir, service)
    except PosterSourceMissing as e:
        log.error(f"Could not generate poster override: {e}")
        return 1

    log.info("Poster override written.")
    for poster in posters:
        log.info("|-%s", poster)
    return 0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="hlsworker", description="HLS transcode worker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("worker", help="Consume transcode jobs from the queue")

    metadata_parser = subparsers.add_parser("metadata", help="Print HLS metadata of an output directory as JSON")
    metadata_parser.add_argument("output_dir", type=Path)

    poster_parser = subparsers.add_parser("poster-override", help="Replace the posters of a video with an image")
    poster_parser.add_argument("source_image", type=Path)
    poster_parser.add_argument("output_dir", type=Path)

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    app_config = ConfigManager.get_config()
    configure_logging(app_config.logs_dir)

    if args.command == "worker":
        log.info("%s v.%s", app_config.app_name, app_config.app_version)
        log.info("Current datetime: %s", datetime.now(timezone.utc))
        return run_worker(app_config)
    if args.command == "metadata":
        return run_metadata(app_config, args.output_dir)
    return run_poster_override(app_config, args.source_image, args.output_dir)


if __name__ == "__main__":
    sys.exit(main())
