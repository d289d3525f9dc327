import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hlsworker import file_utils
from hlsworker.extractor.ffprobe_extractor import round_half_up

log = logging.getLogger(__name__)

EXTINF_TAG = "#EXTINF:"


@dataclass(frozen=True)
class VariantTotals:
    total_ms: int
    total_bytes: int
    segments_count: int

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.total_ms <= 0:
            return None
        return round_half_up(self.total_ms / 1000)

    @property
    def measured_kbps(self) -> Optional[int]:
        if self.total_ms <= 0:
            return None
        return round_half_up(self.total_bytes * 8 / (self.total_ms / 1000) / 1000)


def sum_variant_playlist(playlist_path: Path) -> VariantTotals:
    """
    Aggregate duration and size of one variant playlist.

    Duration is the sum of the `#EXTINF` values in milliseconds. Size is the
    playlist file plus every segment it lists, with segment paths resolved
    against the playlist's directory. Unreadable files count as zero bytes.
    """
    playlist_dir = playlist_path.parent
    total_ms = 0
    total_bytes = file_utils.get_file_size_bytes(playlist_path)
    segments = []

    for line in file_utils.read_lines(playlist_path):
        if line.startswith(EXTINF_TAG):
            total_ms += _extinf_ms(line)
        elif line and not line.startswith("#"):
            segments.append(line.strip())

    for segment in segments:
        total_bytes += file_utils.get_file_size_bytes((playlist_dir / segment).resolve())

    return VariantTotals(total_ms=total_ms, total_bytes=total_bytes, segments_count=len(segments))


def _extinf_ms(line: str) -> int:
    value = line[len(EXTINF_TAG):].split(",")[0].strip()
    try:
        seconds = float(value)
    except ValueError:
        log.debug(f"Ignoring unreadable EXTINF duration: {line}")
        return 0
    if not math.isfinite(seconds):
        return 0
    return round_half_up(seconds * 1000)
