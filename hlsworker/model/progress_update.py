from typing import Optional

from pydantic import BaseModel, Field


class ProgressUpdate(BaseModel):
    seconds_done: float = 0.0
    percent: Optional[int] = None
    frame: Optional[int] = None
    fps: Optional[float] = None
    speed: Optional[str] = None
    total_size: Optional[int] = None
    bitrate: Optional[str] = None
    is_final: bool = False
    raw: dict[str, str] = Field(default_factory=dict)
