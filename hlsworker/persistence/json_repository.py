import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import BaseModel, Field

from hlsworker import json_serializer
from hlsworker.locking import LockManager
from hlsworker.model.rendition import Rendition, RenditionRecord
from hlsworker.model.transcode_job import TranscodeJobRecord, TranscodeState
from hlsworker.persistence.media_repository import MediaRepository

log = logging.getLogger(__name__)

STORE_FILE_NAME = "hlsworker_store.json"
SCHEMA_VERSION = 1


class StoreDocument(BaseModel):
    schema_version: int = SCHEMA_VERSION
    next_job_id: int = 1
    next_rendition_id: int = 1
    transcode_jobs: List[TranscodeJobRecord] = Field(default_factory=list)
    renditions: List[RenditionRecord] = Field(default_factory=list)
    video_ready: dict[int, bool] = Field(default_factory=dict)


class JsonMediaRepository(MediaRepository):
    """
    MediaRepository backed by one JSON document. Every write is a locked
    load-modify-save of the whole document.
    """

    def __init__(self, data_dir: Path, lock_timeout: Optional[float] = None):
        data_dir.mkdir(parents=True, exist_ok=True)
        self.store_path = data_dir / STORE_FILE_NAME
        self.lock_timeout = lock_timeout

    def create_transcode_job(self, upload_id: int, input_path: str, output_path: str,
                             state: TranscodeState = TranscodeState.TRANSCODING) -> TranscodeJobRecord:
        with self._document(write=True) as document:
            job = TranscodeJobRecord(
                id=document.next_job_id,
                upload_id=upload_id,
                input_path=input_path,
                output_path=output_path,
                state=state,
            )
            document.next_job_id += 1
            document.transcode_jobs.append(job)

        log.info("Transcode job created.")
        log.info("|-Job id: %d", job.id)
        log.info("|-Upload id: %d", upload_id)
        return job

    def finish_transcode_job(self, job_id: int, state: TranscodeState, transcode_result: str) -> TranscodeJobRecord:
        with self._document(write=True) as document:
            job = _find_job(document, job_id)
            if job is None:
                raise KeyError(f"Transcode job {job_id} not found")
            job.state = state
            job.transcode_result = transcode_result
            job.updated_at = datetime.now(timezone.utc)
        return job

    def insert_rendition(self, video_id: int, rendition: Rendition) -> RenditionRecord:
        with self._document(write=True) as document:
            record = RenditionRecord(id=document.next_rendition_id, video_id=video_id, **rendition.model_dump())
            document.next_rendition_id += 1
            document.renditions.append(record)
        return record

    def set_video_ready(self, video_id: int) -> None:
        with self._document(write=True) as document:
            document.video_ready[video_id] = True

    def is_video_ready(self, video_id: int) -> bool:
        with self._document() as document:
            return document.video_ready.get(video_id, False)

    def get_transcode_job(self, job_id: int) -> Optional[TranscodeJobRecord]:
        with self._document() as document:
            return _find_job(document, job_id)

    def list_renditions(self, video_id: int) -> List[RenditionRecord]:
        with self._document() as document:
            return [record for record in document.renditions if record.video_id == video_id]

    @contextmanager
    def _document(self, write: bool = False) -> Iterator[StoreDocument]:
        with LockManager.acquire_store_lock(self.store_path, timeout=self.lock_timeout):
            if self.store_path.is_file():
                document = json_serializer.load_from_json(self.store_path, StoreDocument)
            else:
                document = StoreDocument()

            yield document

            if write:
                json_serializer.serialize_to_json(document, self.store_path)


def _find_job(document: StoreDocument, job_id: int) -> Optional[TranscodeJobRecord]:
    for job in document.transcode_jobs:
        if job.id == job_id:
            return job
    return None
