from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TranscodeState(str, Enum):
    CREATED = "created"
    TRANSCODING = "transcoding"
    COMPLETED = "completed"
    FAILED = "failed"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TranscodeJobRecord(BaseModel):
    id: int
    upload_id: int
    input_path: str
    output_path: str
    state: TranscodeState = TranscodeState.CREATED
    transcode_result: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
