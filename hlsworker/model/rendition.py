from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class RenditionKind(str, Enum):
    PROGRESSIVE = "progressive"
    VARIANT = "variant"


class Rendition(BaseModel):
    """One output file of a transcode, as written to the TranscodeInfo store."""
    kind: RenditionKind
    path: str
    duration: Optional[int] = None
    size_bytes: Optional[int] = None
    bitrate_kbps: Optional[int] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    pixel_format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RenditionRecord(Rendition):
    id: int
    video_id: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
