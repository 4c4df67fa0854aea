"""Line unfolding and content-line tokenizing for iCalendar streams - caldav_lite.

Reads text, bytes or a file object in chunks, joins folded lines and splits
each logical line into name, parameters and value. Nothing here fails on bad
content: lines that cannot be tokenized are skipped.
"""

import codecs
import logging
from collections.abc import Generator, Iterable
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, TextIO, Union

from .lite_exceptions import LiteICSContentTooLargeError, LiteICSStreamError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192  # 8KB chunks for stream reading
DEFAULT_STREAM_DECODE_ERRORS = "replace"  # UTF-8 decode error handling

ICSSource = Union[str, bytes, BinaryIO, TextIO]


@dataclass(frozen=True)
class ContentLine:
    """A tokenized logical line: NAME;KEY=VALUE:value."""

    name: str
    value: str
    params: dict[str, str] = field(default_factory=dict)

    def param(self, key: str, default: str = "") -> str:
        return self.params.get(key, default)


class LiteLineReader:
    """Chunked reader producing unfolded logical lines.

    A physical line that starts with a single space or tab continues the
    previous line; exactly that one character is removed and the rest is
    appended with no separator.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_size_bytes: Optional[int] = None,
    ) -> None:
        """Initialize the reader.

        Args:
            chunk_size: Number of characters/bytes requested per read()
            max_size_bytes: Optional upper bound on consumed input; None disables it
        """
        self.chunk_size = chunk_size
        self.max_size_bytes = max_size_bytes

    def iter_logical_lines(self, source: ICSSource) -> Generator[str, None, None]:
        """Yield unfolded logical lines from ``source``.

        Args:
            source: ICS text, UTF-8 bytes, or a readable text/binary file object

        Yields:
            Logical lines without line terminators; blank lines are skipped

        Raises:
            LiteICSStreamError: If reading the file object fails
            LiteICSContentTooLargeError: If max_size_bytes is exceeded
        """
        pending: Optional[str] = None
        for raw in self._iter_physical_lines(source):
            line = raw.rstrip("\r")
            if line[:1] in (" ", "\t"):
                pending = line[1:] if pending is None else pending + line[1:]
                continue
            if pending:
                yield pending
            pending = line
        if pending:
            yield pending

    def iter_content_lines(self, source: ICSSource) -> Generator[ContentLine, None, None]:
        """Yield tokenized content lines, skipping lines that have no name or colon."""
        for line in self.iter_logical_lines(source):
            content_line = tokenize_line(line)
            if content_line is None:
                logger.debug("Skipping malformed line: %.80r", line)
                continue
            yield content_line

    def _iter_physical_lines(self, source: ICSSource) -> Generator[str, None, None]:
        buffer = ""
        for chunk in self._iter_chunks(source):
            buffer += chunk
            lines = buffer.split("\n")
            buffer = lines.pop()
            yield from lines
        if buffer:
            yield buffer

    def _iter_chunks(self, source: ICSSource) -> Generator[str, None, None]:
        if isinstance(source, str):
            self._check_size(len(source.encode("utf-8", errors="replace")))
            yield source.lstrip("\ufeff")
            return
        if isinstance(source, (bytes, bytearray)):
            self._check_size(len(source))
            yield bytes(source).decode("utf-8-sig", errors=DEFAULT_STREAM_DECODE_ERRORS)
            return

        decoder = codecs.getincrementaldecoder("utf-8-sig")(errors=DEFAULT_STREAM_DECODE_ERRORS)
        total = 0
        first = True
        while True:
            try:
                chunk = source.read(self.chunk_size)
            except OSError as exc:
                logger.warning("Failed reading ICS stream: %s", exc)
                raise LiteICSStreamError(f"Failed reading ICS stream: {exc}") from exc
            if not chunk:
                break
            if isinstance(chunk, (bytes, bytearray)):
                total += len(chunk)
                self._check_size(total)
                text = decoder.decode(chunk, final=False)
            else:
                total += len(chunk)
                self._check_size(total)
                text = chunk.lstrip("\ufeff") if first else chunk
            first = False
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail

    def _check_size(self, size: int) -> None:
        if self.max_size_bytes is not None and size > self.max_size_bytes:
            logger.error(
                "ICS content too large: %d bytes exceeds %d limit", size, self.max_size_bytes
            )
            raise LiteICSContentTooLargeError(
                f"ICS content too large: {size} bytes exceeds {self.max_size_bytes} limit"
            )


def unfold_lines(lines: Iterable[str]) -> list[str]:
    """Unfold already split physical lines into logical lines."""
    return list(LiteLineReader().iter_logical_lines("\n".join(lines)))


def _split_unquoted(text: str, separator: str) -> list[str]:
    parts = []
    current = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
        if ch == separator and not in_quotes:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _find_value_colon(line: str) -> int:
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            return i
    # Unbalanced quotes: fall back to the first colon
    return line.find(":")


def tokenize_line(line: str) -> Optional[ContentLine]:
    """Split a logical line into name, parameters and value.

    The name and parameter keys are upper-cased; surrounding double quotes are
    removed from parameter values. Parameters without "=" are ignored.

    Args:
        line: Unfolded logical line

    Returns:
        ContentLine, or None when the line has no colon or no name
    """
    colon = _find_value_colon(line)
    if colon < 0:
        return None

    segments = _split_unquoted(line[:colon], ";")
    name = segments[0].strip().upper()
    if not name:
        return None

    params: dict[str, str] = {}
    for segment in segments[1:]:
        key, sep, raw_value = segment.partition("=")
        if not sep or not key.strip():
            continue
        params[key.strip().upper()] = raw_value.strip().strip('"')

    return ContentLine(name=name, value=line[colon + 1 :], params=params)
