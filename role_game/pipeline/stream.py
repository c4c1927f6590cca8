"""Incremental JSON object reassembly for chunked model output.

The model server streams concatenated JSON objects. They are not reliably
newline-separated and the transport may split one object across chunks or
pack several objects into one chunk, so objects are found by brace depth
rather than by line.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Reassemble complete JSON objects from arbitrary text fragments.

    Feed text as it arrives; each call returns the objects completed by that
    text. Malformed objects are dropped and scanning continues.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Discard the buffer and all scan state."""
        self._buffer = ""
        self._pos = 0  # next unscanned offset in _buffer
        self._depth = 0
        self._start = -1
        self._in_string = False
        self._escape = False

    @property
    def pending(self) -> str:
        """Text received but not yet consumed."""
        return self._buffer

    def feed(self, text: str) -> list[dict[str, Any]]:
        self._buffer += text
        out: list[dict[str, Any]] = []

        while self._pos < len(self._buffer):
            ch = self._buffer[self._pos]
            i = self._pos
            self._pos += 1

            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
                continue

            if ch == '"':
                self._in_string = True
            elif ch == "{":
                if self._depth == 0:
                    self._start = i
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    span = self._buffer[self._start:i + 1]
                    self._consume(i + 1)
                    obj = self._parse(span)
                    if obj is not None:
                        out.append(obj)
                elif self._depth < 0:
                    # Stray closer outside any object
                    self._depth = 0
                    self._consume(i + 1)

        return out

    def finish(self) -> list[dict[str, Any]]:
        """Flush at end of transport: one last attempt on whatever is left."""
        rest = self._buffer.strip()
        self.reset()
        if not rest:
            return []
        obj = self._parse(rest)
        return [obj] if obj is not None else []

    def _consume(self, end: int) -> None:
        self._buffer = self._buffer[end:]
        self._pos = 0
        self._start = -1

    def _parse(self, span: str) -> dict[str, Any] | None:
        try:
            obj = json.loads(span)
        except json.JSONDecodeError as e:
            logger.debug("Dropping malformed stream object (%s): %r", e, span[:200])
            return None
        if not isinstance(obj, dict):
            logger.debug("Dropping non-object stream value: %r", span[:200])
            return None
        return obj


async def decode_stream(
    chunks: AsyncIterator[str],
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Yield complete JSON objects from an async iterator of text chunks.

    Stops without yielding anything further once `cancel` is set; the
    pending buffer is discarded. Not restartable.
    """
    decoder = StreamDecoder()
    async for chunk in chunks:
        if cancel is not None and cancel.is_set():
            decoder.reset()
            return
        for obj in decoder.feed(chunk):
            yield obj
            if cancel is not None and cancel.is_set():
                decoder.reset()
                return
    if cancel is not None and cancel.is_set():
        return
    for obj in decoder.finish():
        yield obj
