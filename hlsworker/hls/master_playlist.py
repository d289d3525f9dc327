import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hlsworker import file_utils
from hlsworker.extractor.ffprobe_extractor import round_half_up
from hlsworker.hls.attribute_tokenizer import AttributeValue, parse_attribute_list

log = logging.getLogger(__name__)

STREAM_INF_TAG = "#EXT-X-STREAM-INF:"

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)$")


@dataclass(frozen=True)
class StreamDeclaration:
    """One `#EXT-X-STREAM-INF` entry of a master playlist and the URI line after it."""
    uri: str
    attributes: dict[str, AttributeValue]

    @property
    def variant_id(self) -> Optional[str]:
        return self.uri.split("/")[0] or None

    @property
    def bandwidth_kbps(self) -> Optional[int]:
        bandwidth = self.attributes.get("BANDWIDTH")
        if isinstance(bandwidth, int):
            return round_half_up(bandwidth / 1000)
        return None

    @property
    def resolution(self) -> Optional[str]:
        resolution = self.attributes.get("RESOLUTION")
        return str(resolution) if resolution else None

    @property
    def width_height(self) -> tuple[Optional[int], Optional[int]]:
        if not self.resolution:
            return None, None
        match = _RESOLUTION_PATTERN.match(self.resolution)
        if not match:
            return None, None
        return int(match.group(1)), int(match.group(2))

    @property
    def frame_rate(self) -> Optional[float]:
        frame_rate = self.attributes.get("FRAME-RATE")
        if frame_rate is None:
            return None
        try:
            return float(frame_rate)
        except ValueError:
            return None

    @property
    def codecs(self) -> Optional[str]:
        codecs = self.attributes.get("CODECS")
        return str(codecs) if codecs is not None else None


def parse_master_lines(lines: list[str]) -> list[StreamDeclaration]:
    """
    Stream declarations in file order. An entry whose next line is missing,
    blank or another tag is skipped.
    """
    declarations = []
    for index, line in enumerate(lines):
        if not line.startswith(STREAM_INF_TAG):
            continue

        uri = lines[index + 1].strip() if index + 1 < len(lines) else ""
        if not uri or uri.startswith("#"):
            log.warning(f"Stream declaration on line {index + 1} has no URI, skipping.")
            continue

        declarations.append(StreamDeclaration(uri=uri, attributes=parse_attribute_list(line)))
    return declarations


def read_master_playlist(master_path: Path) -> list[StreamDeclaration]:
    return parse_master_lines(file_utils.read_lines(master_path))
