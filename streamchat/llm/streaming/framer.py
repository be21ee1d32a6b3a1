"""
Newline framing for chunked SSE text.
"""

from __future__ import annotations

from collections.abc import Iterator


class LineFramer:
    """
    Splits an append-only text buffer into complete lines.

    Lines are produced lazily; whatever the consumer does not pull stays in
    the buffer, so abandoning the iterator never loses text. A line handed
    back through ``requeue`` is parked in a single pending slot and is the
    first line emitted by the next ``feed``.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pending: str | None = None

    @property
    def pending(self) -> str | None:
        """Line waiting to be re-emitted, if any."""
        return self._pending

    @property
    def buffered(self) -> int:
        """Number of unframed characters currently held."""
        return len(self._buffer)

    def feed(self, chunk: str) -> Iterator[str]:
        """
        Append ``chunk`` and yield every complete line in order.

        Each line excludes its ``\\n`` and a trailing ``\\r``. The remainder
        after the last newline is kept for the next call.
        """
        self._buffer += chunk
        return self._lines()

    def requeue(self, line: str) -> None:
        """Park ``line`` so it is framed again ahead of buffered text."""
        if self._pending is not None:
            raise RuntimeError("A line is already pending re-framing")
        self._pending = line

    def reset(self) -> None:
        self._buffer = ""
        self._pending = None

    def _lines(self) -> Iterator[str]:
        if self._pending is not None:
            line, self._pending = self._pending, None
            yield line

        while (newline_index := self._buffer.find("\n")) != -1:
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]
            if line.endswith("\r"):
                line = line[:-1]
            yield line
