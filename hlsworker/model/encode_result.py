from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class EncodeResult(BaseModel):
    output_dir: Path
    exit_code: int
    final_block: Optional[dict[str, str]] = None
    logs: List[str] = Field(default_factory=list)
