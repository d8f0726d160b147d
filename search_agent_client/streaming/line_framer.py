"""
Incremental newline framing for streamed response bodies.

Network reads split the body wherever they like, so one JSON record may be
cut in half (or many records may arrive in one read). LineFramer keeps the
unfinished tail between reads and only hands out whole lines.
"""

from __future__ import annotations

import codecs
import logging
from typing import Iterable, Iterator, List

log = logging.getLogger(__name__)


class LineFramer:
    """
    Turns text chunks into newline-delimited records.

    One instance per response body: after close() it refuses further input.
    """

    def __init__(self) -> None:
        self._buffer: str = ""
        self._closed: bool = False
        self.records_emitted: int = 0

    def feed(self, chunk: str) -> List[str]:
        """Add a chunk and return every record it completed, in order."""
        if self._closed:
            raise RuntimeError("LineFramer already closed; create a new one per response")
        if not chunk:
            return []
        pieces = (self._buffer + chunk).split("\n")
        self._buffer = pieces.pop()
        out = [_strip_cr(p) for p in pieces]
        self.records_emitted += len(out)
        return out

    def close(self) -> List[str]:
        """End of input: a non-empty tail becomes the final record."""
        if self._closed:
            return []
        self._closed = True
        tail, self._buffer = self._buffer, ""
        tail = _strip_cr(tail)
        if not tail.strip():
            return []
        log.debug(f"FRAMER_FLUSH_PARTIAL | size={len(tail)}")
        self.records_emitted += 1
        return [tail]

    @property
    def pending(self) -> str:
        return self._buffer


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def iter_records(chunks: Iterable[str]) -> Iterator[str]:
    """Frame a whole sequence of text chunks lazily."""
    framer = LineFramer()
    for chunk in chunks:
        yield from framer.feed(chunk)
    yield from framer.close()


class ByteLineFramer:
    """LineFramer over raw bytes; multi-byte UTF-8 characters may straddle reads."""

    def __init__(self, encoding: str = "utf-8") -> None:
        try:
            factory = codecs.getincrementaldecoder(encoding)
        except LookupError:
            log.warning(f"FRAMER_UNKNOWN_CHARSET | charset={encoding} | using=utf-8")
            factory = codecs.getincrementaldecoder("utf-8")
        self._decoder = factory(errors="replace")
        self._framer = LineFramer()

    def feed(self, data: bytes) -> List[str]:
        return self._framer.feed(self._decoder.decode(data))

    def close(self) -> List[str]:
        records = self._framer.feed(self._decoder.decode(b"", final=True))
        return records + self._framer.close()

    @property
    def records_emitted(self) -> int:
        return self._framer.records_emitted
