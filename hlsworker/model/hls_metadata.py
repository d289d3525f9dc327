from typing import List

from pydantic import BaseModel, Field

from hlsworker.model.progressive_info import ProgressiveInfo
from hlsworker.model.variant_info import VariantInfo


class HlsMetadata(BaseModel):
    name: str
    output_dir: str
    master: str
    variants: List[VariantInfo] = Field(default_factory=list)
    progressive: ProgressiveInfo
