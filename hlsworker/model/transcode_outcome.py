from typing import Optional

from pydantic import BaseModel

from hlsworker.model.hls_metadata import HlsMetadata
from hlsworker.model.transcode_job import TranscodeState


class TranscodeOutcome(BaseModel):
    state: TranscodeState
    job_id: Optional[int] = None
    video_id: Optional[int] = None
    renditions_written: int = 0
    video_ready: bool = False
    error: Optional[str] = None
    metadata: Optional[HlsMetadata] = None

    @property
    def succeeded(self) -> bool:
        return self.state == TranscodeState.COMPLETED
