import logging
import re
from typing import Union

log = logging.getLogger(__name__)

AttributeValue = Union[str, int, float]

_NAME_CHARS = re.compile(r"[A-Z0-9-]")
_INTEGER = re.compile(r"^\d+$")
_DECIMAL = re.compile(r"^\d+\.\d+$")


def parse_attribute_list(text: str) -> dict[str, AttributeValue]:
    """
    Tokenize an HLS attribute list: comma separated `NAME=value` pairs where a
    value is either unquoted (`BANDWIDTH=1280000`, `RESOLUTION=1920x1080`) or a
    double quoted string that may contain commas and backslash escapes
    (`CODECS="avc1.640028,mp4a.40.2"`).

    Unquoted decimal integers become int and decimal floats become float.
    Quoted values and all other unquoted values stay strings. Malformed pairs
    are skipped; the rest of the list is still read.

    A leading tag (`#EXT-X-STREAM-INF:`) is ignored.
    """
    if text.startswith("#"):
        colon = text.find(":")
        text = text[colon + 1:] if colon != -1 else ""

    attributes: dict[str, AttributeValue] = {}
    pos = 0
    length = len(text)

    while pos < length:
        while pos < length and text[pos] in ", \t":
            pos += 1
        if pos >= length:
            break

        name_start = pos
        while pos < length and _NAME_CHARS.match(text[pos]):
            pos += 1
        name = text[name_start:pos]

        if not name or pos >= length or text[pos] != "=":
            log.debug("Skipping malformed attribute near offset %d: %r", name_start, text[name_start:])
            pos = _skip_to_next_pair(text, pos)
            continue
        pos += 1

        if pos < length and text[pos] == '"':
            value, pos = _read_quoted(text, pos + 1)
            attributes[name] = value
        else:
            value_start = pos
            while pos < length and text[pos] != ",":
                pos += 1
            attributes[name] = _typed(text[value_start:pos].strip())

    return attributes


def _read_quoted(text: str, pos: int) -> tuple[str, int]:
    chars = []
    length = len(text)
    while pos < length:
        char = text[pos]
        if char == "\\" and pos + 1 < length:
            chars.append(text[pos + 1])
            pos += 2
            continue
        if char == '"':
            return "".join(chars), pos + 1
        chars.append(char)
        pos += 1
    # unterminated: keep what was read
    return "".join(chars), pos


def _skip_to_next_pair(text: str, pos: int) -> int:
    in_quotes = False
    while pos < len(text):
        char = text[pos]
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            return pos + 1
        pos += 1
    return pos


def _typed(raw: str) -> AttributeValue:
    if _INTEGER.match(raw):
        return int(raw)
    if _DECIMAL.match(raw):
        return float(raw)
    return raw
