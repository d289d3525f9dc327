from typing import Optional

from pydantic import BaseModel

from hlsworker.model.codec_info import CodecInfo


class ProgressiveInfo(BaseModel):
    path: str
    size_bytes: Optional[int] = None
    measured_kbps: Optional[int] = None
    duration_seconds: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    pixel_format: Optional[str] = None
    video_codec: Optional[CodecInfo] = None
    audio_codec: Optional[CodecInfo] = None
