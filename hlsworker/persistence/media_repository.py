from abc import ABC, abstractmethod
from typing import List, Optional

from hlsworker.model.rendition import Rendition, RenditionRecord
from hlsworker.model.transcode_job import TranscodeJobRecord, TranscodeState


class MediaRepository(ABC):
    """
    Storage the pipeline writes to. Each method is one independent write or
    read; nothing spans several calls.
    """

    @abstractmethod
    def create_transcode_job(self, upload_id: int, input_path: str, output_path: str,
                             state: TranscodeState = TranscodeState.TRANSCODING) -> TranscodeJobRecord:
        pass

    @abstractmethod
    def finish_transcode_job(self, job_id: int, state: TranscodeState, transcode_result: str) -> TranscodeJobRecord:
        pass

    @abstractmethod
    def insert_rendition(self, video_id: int, rendition: Rendition) -> RenditionRecord:
        pass

    @abstractmethod
    def set_video_ready(self, video_id: int) -> None:
        pass

    @abstractmethod
    def is_video_ready(self, video_id: int) -> bool:
        pass

    @abstractmethod
    def get_transcode_job(self, job_id: int) -> Optional[TranscodeJobRecord]:
        pass

    @abstractmethod
    def list_renditions(self, video_id: int) -> List[RenditionRecord]:
        pass
