from typing import Optional

from pydantic import BaseModel


class CodecInfo(BaseModel):
    codec_name: Optional[str] = None
    codec_long_name: Optional[str] = None
    profile: Optional[str] = None
    bit_rate_kbps: Optional[int] = None

    # video
    pixel_format: Optional[str] = None
    level: Optional[int] = None

    # audio
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
