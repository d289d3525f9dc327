import logging
import re
from typing import Callable, Optional

from hlsworker.model.progress_update import ProgressUpdate

log = logging.getLogger(__name__)

PROGRESS_KEY = "progress"
PROGRESS_END = "end"

_TIMECODE_PATTERN = re.compile(r"(\d+):(\d+):(\d+(?:\.\d+)?)")


def timecode_to_seconds(timecode: Optional[str]) -> float:
    """
    Convert an encoder timecode such as "00:05:15.375000" to seconds.
    Absent or malformed input yields 0.
    """
    if not timecode:
        return 0.0
    match = _TIMECODE_PATTERN.search(timecode)
    if not match:
        return 0.0
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_block(block: dict[str, str], duration_seconds: Optional[float] = None) -> ProgressUpdate:
    """
    Turn one accumulated progress block into a ProgressUpdate.

    Args:
        block: key/value pairs of one progress cycle, including the "progress" key
        duration_seconds: total input duration, when known, used for percent
    """
    out_time = block.get("out_time")
    out_time_ms = block.get("out_time_ms")

    seconds_done = 0.0
    if out_time:
        seconds_done = timecode_to_seconds(out_time)
    elif out_time_ms:
        seconds_done = _to_float(out_time_ms, default=0.0) / 1000

    return ProgressUpdate(
        seconds_done=seconds_done,
        percent=_percent(seconds_done, duration_seconds),
        frame=_to_int(block.get("frame")),
        fps=_to_float(block.get("fps")),
        speed=block.get("speed"),
        total_size=_to_int(block.get("total_size")),
        bitrate=block.get("bitrate"),
        is_final=block.get(PROGRESS_KEY) == PROGRESS_END,
        raw=dict(block),
    )


class ProgressTracker:
    """
    Receives flushed progress blocks, forwards parsed updates to the caller and
    keeps the terminal ("progress=end") block.
    """

    def __init__(self,
                 on_progress: Optional[Callable[[ProgressUpdate], None]] = None,
                 duration_seconds: Optional[float] = None):
        self.on_progress = on_progress
        self.duration_seconds = duration_seconds
        self.final_block: Optional[dict[str, str]] = None
        self.last_update: Optional[ProgressUpdate] = None
        self.updates_count = 0

    def handle_block(self, block: dict[str, str]) -> ProgressUpdate:
        update = parse_block(block, self.duration_seconds)
        self.last_update = update
        self.updates_count += 1

        log.debug("Encoder progress: %.3fs, frame=%s, speed=%s", update.seconds_done, update.frame, update.speed)

        if self.on_progress is not None:
            self.on_progress(update)

        if update.is_final:
            self.final_block = dict(block)
            self.final_block["seconds_done"] = str(update.seconds_done)

        return update


def _percent(seconds_done: float, duration_seconds: Optional[float]) -> Optional[int]:
    if not duration_seconds or duration_seconds <= 0:
        return None
    return max(0, min(100, round(seconds_done / duration_seconds * 100)))


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def _to_float(value: Optional[str], default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default
