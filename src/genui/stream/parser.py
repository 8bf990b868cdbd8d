"""Best-effort recovery of completed elements from a streamed JSON array.

The model answers with ``[ {...}, {...}, ... ]`` but the text arrives a few
characters at a time, so the buffer is almost never a valid document. The
scanner below tracks string, escape and bracket depth to find the top-level
separators of the array. An element is released only once the character that
terminates it (``,`` or the closing ``]``) has arrived; everything after the
last terminator stays buffered for the next chunk.

When the upstream stream ends, whatever is left in the buffer is scanned once
more as if the closing bracket had arrived, so a model that forgot it does not
lose its final element.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractResult:
    elements: list[Any] = field(default_factory=list)
    consumed: bool = False
    remainder: str = ""
    in_array: bool = False


def _find_start(buffer: str) -> int | None:
    """Return the offset after leading noise such as prose or a code fence."""

    for index, char in enumerate(buffer):
        if char == "[":
            return index + 1
        if char == "{":
            return index
    return None


def try_extract(buffer: str, *, in_array: bool = False) -> ExtractResult:
    """Return every top-level element of ``buffer`` whose terminator arrived.

    ``in_array`` tells the scanner that the opening bracket was consumed by an
    earlier call, so the buffer starts directly with element text.
    """

    if in_array:
        start = 0
    else:
        located = _find_start(buffer)
        if located is None:
            return ExtractResult(remainder=buffer, in_array=False)
        start = located

    segments: list[str] = []
    cut: int | None = None
    closed = False
    depth = 0
    in_string = False
    escaped = False
    segment_start = start

    for position in range(start, len(buffer)):
        char = buffer[position]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            if depth > 0:
                depth -= 1
            elif char == "]":
                segments.append(buffer[segment_start:position])
                cut = position + 1
                closed = True
                break
        elif char == "," and depth == 0:
            segments.append(buffer[segment_start:position])
            segment_start = position + 1
            cut = position + 1

    if cut is None:
        return ExtractResult(remainder=buffer, in_array=in_array)

    elements: list[Any] = []
    for segment in segments:
        text = segment.strip()
        if not text:
            continue
        try:
            elements.append(json.loads(text))
        except json.JSONDecodeError as exc:
            logger.warning(
                "Discarding malformed array element (%s): %.200s", exc.msg, text
            )

    return ExtractResult(
        elements=elements,
        consumed=True,
        remainder=buffer[cut:],
        in_array=not closed,
    )


class ComponentStreamParser:
    """Accumulate streamed text and release array elements as they close."""

    __slots__ = ("buffer", "_in_array", "_noted_incomplete")

    def __init__(self) -> None:
        self.buffer = ""
        self._in_array = False
        self._noted_incomplete = False

    def feed(self, text: str) -> list[Any]:
        """Append ``text`` and return the batch of newly closed elements."""

        if not text:
            return []
        self.buffer += text

        result = try_extract(self.buffer, in_array=self._in_array)
        if not result.consumed:
            # Routine until the first element closes; note it once per stream.
            if not self._noted_incomplete:
                self._noted_incomplete = True
                logger.debug(
                    "No closed element yet after %d chars; accumulating",
                    len(self.buffer),
                )
            return []

        self.buffer = result.remainder
        self._in_array = result.in_array
        return result.elements

    def discard(self) -> str:
        """Drop any partially received element and return its text."""

        dropped, self.buffer = self.buffer, ""
        return dropped

    def finish(self) -> list[Any]:
        """Recover an unterminated final element once the stream has ended.

        The leftover is replayed through the same scanner with the missing
        closing bracket appended, so it is only parsed when it ends outside a
        string and at element depth. A dangling separator leaves an empty
        segment, which the scanner skips.
        """

        leftover, self.buffer = self.buffer, ""
        start = 0 if self._in_array else _find_start(leftover)
        self._in_array = False
        if start is None or not leftover[start:].strip():
            return []

        result = try_extract(leftover[start:] + "]", in_array=True)
        if not result.consumed or result.in_array:
            logger.warning(
                "Discarding incomplete trailing fragment: %.200s", leftover.strip()
            )
            return []
        return result.elements


__all__ = [
    "ComponentStreamParser",
    "ExtractResult",
    "try_extract",
]
