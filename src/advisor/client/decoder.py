"""Incremental decoder for the advisor's Server-Sent-Events reply stream.

Chunks arrive at arbitrary byte offsets: in the middle of a UTF-8 sequence,
a line, or a JSON object. :class:`StreamDecoder` keeps a single text buffer
and a cursor marking the first unconsumed line. A data frame whose payload
does not parse yet stays under the cursor until more bytes arrive, so a
fragment is never dropped and never parsed twice.
"""

from __future__ import annotations

import codecs
import json
from enum import Enum
from typing import Any, AsyncIterator, Optional

from .errors import IncompleteFrameError, StreamDecodeError

COMMENT_MARKER = ":"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameKind(str, Enum):
    BLANK = "blank"
    COMMENT = "comment"
    DATA = "data"
    DONE = "done"
    OTHER = "other"


def classify_line(line: str) -> tuple[FrameKind, str]:
    """Return the frame kind of ``line`` and its trimmed payload."""

    if not line.strip():
        return FrameKind.BLANK, ""
    if line.startswith(COMMENT_MARKER):
        return FrameKind.COMMENT, ""
    if not line.startswith(DATA_PREFIX):
        return FrameKind.OTHER, ""
    payload = line[len(DATA_PREFIX) :].strip()
    if payload == DONE_SENTINEL:
        return FrameKind.DONE, payload
    return FrameKind.DATA, payload


def extract_delta(chunk: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` when it is non-empty text."""

    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


_UNPARSED = object()


def _parse_payload(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return _UNPARSED


class StreamDecoder:
    """Resumable line/frame parser fed with raw response chunks."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._cursor = 0
        self._finished = False
        self.done = False

    @property
    def pending(self) -> str:
        """Text received but not yet consumed as a complete frame."""

        return self._buffer[self._cursor :]

    @property
    def incomplete(self) -> Optional[str]:
        """After :meth:`finish`, the data frame that never completed, if any."""

        if not self._finished or self.done:
            return None
        leftover = self.pending.strip()
        return leftover or None

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the deltas it completed, in order."""

        if self.done or self._finished:
            return []
        try:
            text = self._decoder.decode(chunk)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"invalid UTF-8 in stream: {exc}") from exc
        self._append(text)
        return self._drain()

    def finish(self) -> list[str]:
        """Flush at end of stream, treating an unterminated tail as a line."""

        if self.done or self._finished:
            self._finished = True
            return []
        try:
            text = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"stream ended inside a character: {exc}") from exc
        self._append(text)
        deltas = self._drain()
        if not self.done and self.pending and not self.pending.endswith("\n"):
            self._append("\n")
            deltas.extend(self._drain())
        self._finished = True
        return deltas

    def _append(self, text: str) -> None:
        if self._cursor:
            self._buffer = self._buffer[self._cursor :]
            self._cursor = 0
        self._buffer += text

    def _drain(self) -> list[str]:
        deltas: list[str] = []
        while not self.done:
            newline = self._buffer.find("\n", self._cursor)
            if newline == -1:
                break
            line = self._buffer[self._cursor : newline]
            if line.endswith("\r"):
                line = line[:-1]
            if not self._consume(line, deltas):
                # Frame not complete yet; keep it under the cursor.
                break
            self._cursor = newline + 1
        return deltas

    def _consume(self, line: str, deltas: list[str]) -> bool:
        kind, payload = classify_line(line)
        if kind is FrameKind.DONE:
            self.done = True
            return True
        if kind is not FrameKind.DATA:
            return True
        chunk = _parse_payload(payload)
        if chunk is _UNPARSED:
            return False
        delta = extract_delta(chunk)
        if delta:
            deltas.append(delta)
        return True


async def iter_deltas(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Yield text deltas from a byte stream as soon as each one completes.

    Stops reading at the ``[DONE]`` sentinel. Raises
    :class:`IncompleteFrameError` if the stream ends inside a data frame.
    """

    decoder = StreamDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return
    for delta in decoder.finish():
        yield delta
    if decoder.incomplete is not None:
        raise IncompleteFrameError(decoder.incomplete)


__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "FrameKind",
    "StreamDecoder",
    "classify_line",
    "extract_delta",
    "iter_deltas",
]
