import logging
from typing import Any

from celery import Celery, Task
from celery.result import AsyncResult

from hlsworker.config.app_config import AppConfig
from hlsworker.model.job_payload import TranscodeJobPayload
from hlsworker.model.progress_update import ProgressUpdate
from hlsworker.orchestrator import JobOrchestrator

log = logging.getLogger(__name__)

TRANSCODE_TASK_NAME = "hlsworker.transcode"
PROGRESS_STATE = "PROGRESS"


def create_celery_app(config: AppConfig, **overrides: Any) -> Celery:
    """
    Build the Celery application from AppConfig. Keyword overrides are applied
    on top of the generated settings (tests use them for eager mode).
    """
    app = Celery(config.app_name)
    app.conf.update(
        broker_url=config.effective_broker_url(),
        result_backend=config.effective_result_backend(),
        task_default_queue=config.queue_name,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        task_track_started=True,
        # Acked on receipt: an encode is never handed out a second time
        task_acks_late=False,
        worker_prefetch_multiplier=1,
        worker_concurrency=config.worker_concurrency,
        # Logging is configured by the entry point
        worker_hijack_root_logger=False,
    )
    app.conf.update(overrides)
    return app


def register_transcode_task(app: Celery, orchestrator: JobOrchestrator) -> Task:
    """Register the transcode task on `app`, bound to `orchestrator`."""

    # Not shared: the task belongs to this app and this orchestrator only
    @app.task(bind=True, name=TRANSCODE_TASK_NAME, shared=False, lazy=False)
    def transcode(self, payload: dict) -> dict:
        job_payload = TranscodeJobPayload.model_validate(payload)
        # self.request is thread-local and progress arrives on the encoder drain thread
        task_id = self.request.id

        def report_progress(update: ProgressUpdate):
            # Progress is best effort; the encode keeps running without it
            try:
                self.update_state(task_id=task_id, state=PROGRESS_STATE, meta=update.model_dump(mode="json"))
            except Exception as e:
                log.warning(f"Could not publish progress for task {task_id}: {e}")

        outcome = orchestrator.run(job_payload, on_progress=report_progress)
        return outcome.model_dump(mode="json", exclude={"metadata"})

    return transcode


class TranscodeQueueClient:
    """Producer side of the transcode queue, used by the upload-finish hook."""

    def __init__(self, app: Celery, task_name: str = TRANSCODE_TASK_NAME):
        self.app = app
        self.task_name = task_name

    def enqueue(self, payload: TranscodeJobPayload) -> AsyncResult:
        args = [payload.model_dump(mode="json")]
        queue = self.app.conf.task_default_queue

        # A producer without the task registered sends by name only
        task = self.app.tasks.get(self.task_name)
        if task is not None:
            result = task.apply_async(args=args, queue=queue)
        else:
            result = self.app.send_task(self.task_name, args=args, queue=queue)

        log.info("Transcode job enqueued.")
        log.info("|-Upload id: %s", payload.tus_upload.id)
        log.info("|-Video: %s", payload.video_entry.public_id)
        log.info("|-Task id: %s", result.id)
        return result
