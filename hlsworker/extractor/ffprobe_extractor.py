import json
import logging
import re
import subprocess
from pathlib import Path
from typing import Any, Optional

from hlsworker.exceptions import ProbeFailure
from hlsworker.model.codec_info import CodecInfo

log = logging.getLogger(__name__)

_DECIMAL_PATTERN = re.compile(r"^\d+(\.\d+)?$")
_FRACTION_PATTERN = re.compile(r"^(\d+)/(\d+)$")
_DIGITS_PATTERN = re.compile(r"^\d+$")


class FfprobeRunner:
    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 30):
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    def probe(self, path_to_file: Path) -> dict[str, Any]:
        """
        Run ffprobe on a media file or playlist and return its JSON document
        (`format` and `streams`).

        Raises:
            ProbeFailure: ffprobe is missing, failed, timed out or printed invalid JSON
        """
        cmd = [
            self.ffprobe_path,
            '-v', 'error',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            str(path_to_file),
        ]

        log.debug(f"Executing ffprobe for {path_to_file}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True,
                                    timeout=self.timeout_seconds)
            ffprobe_output = json.loads(result.stdout)
        except subprocess.CalledProcessError as e:
            log.warning(f"ffprobe execution failed for {path_to_file}: {e.stderr}")
            raise ProbeFailure(f"Could not run ffprobe on {path_to_file}") from e
        except subprocess.TimeoutExpired as e:
            log.warning(f"ffprobe timed out after {self.timeout_seconds}s for {path_to_file}")
            raise ProbeFailure(f"ffprobe timed out on {path_to_file}") from e
        except FileNotFoundError as e:
            log.error("ffprobe is not found. Please ensure it is installed and in your PATH.")
            raise ProbeFailure("ffprobe is not found.") from e
        except json.JSONDecodeError as e:
            raise ProbeFailure("ffprobe returned unparseable JSON.") from e

        if not isinstance(ffprobe_output, dict):
            raise ProbeFailure("ffprobe returned an unexpected JSON document.")
        return ffprobe_output

    def probe_or_none(self, path_to_file: Path) -> Optional[dict[str, Any]]:
        try:
            return self.probe(path_to_file)
        except ProbeFailure as e:
            log.warning(f"Probe failed, codec fields will be empty. Reason: {e}")
            return None

    def probe_duration_seconds(self, path_to_file: Path) -> Optional[float]:
        document = self.probe_or_none(path_to_file)
        if document is None:
            return None
        return parse_number(document.get('format', {}).get('duration'))


def first_stream(streams: list[dict[str, Any]], codec_type: str) -> Optional[dict[str, Any]]:
    for stream in streams:
        if stream.get('codec_type') == codec_type:
            return stream
    return None


def extract_video_codec(streams: list[dict[str, Any]]) -> Optional[CodecInfo]:
    stream = first_stream(streams, 'video')
    if stream is None:
        return None

    level = stream.get('level')
    return CodecInfo(
        codec_name=stream.get('codec_name'),
        codec_long_name=stream.get('codec_long_name'),
        profile=_profile(stream),
        pixel_format=stream.get('pix_fmt'),
        level=level if isinstance(level, int) and not isinstance(level, bool) else None,
        bit_rate_kbps=bit_rate_kbps(stream.get('bit_rate')),
    )


def extract_audio_codec(streams: list[dict[str, Any]]) -> Optional[CodecInfo]:
    stream = first_stream(streams, 'audio')
    if stream is None:
        return None

    sample_rate = parse_number(stream.get('sample_rate'))
    channels = stream.get('channels')
    return CodecInfo(
        codec_name=stream.get('codec_name'),
        codec_long_name=stream.get('codec_long_name'),
        profile=_profile(stream),
        sample_rate=int(sample_rate) if sample_rate is not None else None,
        channels=channels if isinstance(channels, int) else None,
        bit_rate_kbps=bit_rate_kbps(stream.get('bit_rate')),
    )


def extract_fps(streams: list[dict[str, Any]]) -> Optional[float]:
    """Average frame rate of the first video stream, falling back to the nominal rate."""
    stream = first_stream(streams, 'video')
    if stream is None:
        return None
    fps = parse_fraction(stream.get('avg_frame_rate'))
    if fps is None:
        fps = parse_fraction(stream.get('r_frame_rate'))
    return fps


def parse_fraction(value: Any) -> Optional[float]:
    """Parse "30", "29.97" or "30000/1001"; "0/0" and anything else yields None."""
    if value is None:
        return None
    text = str(value)
    if _DECIMAL_PATTERN.match(text):
        return float(text)
    match = _FRACTION_PATTERN.match(text)
    if match:
        num, den = int(match.group(1)), int(match.group(2))
        if den != 0:
            return num / den
    return None


def parse_number(value: Any) -> Optional[float]:
    if value is None or value == "" or value == "N/A":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def bit_rate_kbps(value: Any) -> Optional[int]:
    bits = parse_number(value)
    if not bits:
        return None
    return round_half_up(bits / 1000)


def is_digits(value: Any) -> bool:
    return value is not None and bool(_DIGITS_PATTERN.match(str(value)))


def round_half_up(value: float) -> int:
    # Python's round() rounds halves to even; metadata fields round halves up
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _profile(stream: dict[str, Any]) -> Optional[str]:
    profile = stream.get('profile')
    return str(profile) if profile is not None else None
