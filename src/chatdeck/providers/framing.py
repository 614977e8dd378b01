"""Byte-stream framing shared by the provider adapters.

Providers stream either server-sent events (``data: {...}`` lines closed by a
``data: [DONE]`` sentinel) or newline-delimited JSON.  Both are line based, so
the work is the same: decode bytes incrementally, keep whatever follows the
last newline until the next chunk arrives, and flush the tail at the end.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, Dict, Iterable, Iterator, Optional

_logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


class LineBuffer:
    """Carry-over buffer turning arbitrary byte chunks into complete lines."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> Iterator[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            yield line.rstrip("\r")

    def flush(self) -> Optional[str]:
        self._pending += self._decoder.decode(b"", final=True)
        tail, self._pending = self._pending, ""
        tail = tail.rstrip("\r")
        return tail if tail.strip() else None


def iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    buf = LineBuffer()
    for chunk in chunks:
        yield from buf.feed(chunk)
    tail = buf.flush()
    if tail is not None:
        yield tail


def parse_json_line(line: str) -> Optional[Dict[str, Any]]:
    """Parse one NDJSON frame. Blank or malformed frames return None."""
    text = line.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        _logger.debug("Skipping malformed frame: %.200s", text)
        return None
    if not isinstance(data, dict):
        _logger.debug("Skipping non-object frame: %.200s", text)
        return None
    return data


def iter_ndjson(chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
    for line in iter_lines(chunks):
        data = parse_json_line(line)
        if data is not None:
            yield data


def iter_sse(chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
    """
    Yield the JSON payload of each ``data:`` line; stop at the [DONE] sentinel.
    Comments, event names and other SSE fields are ignored.
    """
    for line in iter_lines(chunks):
        if not line.startswith("data:"):
            continue
        payload = line[5:].strip()
        if payload == SSE_DONE:
            return
        data = parse_json_line(payload)
        if data is not None:
            yield data
