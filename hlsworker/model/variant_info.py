from typing import Optional

from pydantic import BaseModel

from hlsworker.model.codec_info import CodecInfo


class VariantInfo(BaseModel):
    id: Optional[str] = None
    path: str
    bandwidth_kbps: Optional[int] = None
    avg_measured_kbps: Optional[int] = None
    size_bytes: Optional[int] = None
    duration_seconds: Optional[int] = None
    resolution: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    codecs: Optional[str] = None
    video_codec: Optional[CodecInfo] = None
    audio_codec: Optional[CodecInfo] = None
