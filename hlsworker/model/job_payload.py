from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class VisibilityState(str, Enum):
    PUBLIC = "public"
    SHAREABLE = "shareable"
    USERS = "users"
    FRIENDS = "friends"
    PRIVATE = "private"


class UploadStorage(BaseModel):
    path: Optional[str] = None


class UploadReference(BaseModel):
    id: str
    storage: Optional[UploadStorage] = None
    metadata: dict[str, Optional[str]] = Field(default_factory=dict)

    @property
    def filename(self) -> Optional[str]:
        return self.metadata.get("filename")


class UploadEntry(BaseModel):
    id: int
    video_id: int
    user_id: int


class VideoEntry(BaseModel):
    id: int
    public_id: str
    user_id: int
    visibility_state: VisibilityState = VisibilityState.PRIVATE
    ready: bool = False


class TranscodeJobPayload(BaseModel):
    tus_upload: UploadReference
    upload_entry: UploadEntry
    video_entry: VideoEntry
