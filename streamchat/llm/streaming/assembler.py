"""
Incremental SSE stream assembler.

Network reads do not line up with SSE line boundaries or with JSON object
boundaries. The assembler frames whatever has arrived into lines, decodes
the ``data:`` payloads and grows the assistant message one fragment at a
time. A payload that fails to parse is parked in the framer's pending slot
and retried when the next chunk arrives instead of being treated as an
error.

State machine::

    STREAMING --[DONE] sentinel----------> DONE
    STREAMING --stream exhausted---------> CLOSED
    any       --transport error/cancel---> FAILED
"""

from __future__ import annotations

import asyncio
import codecs
import io
import logging
import time
from collections.abc import AsyncIterable, Callable
from dataclasses import asdict
from typing import Any

import httpx

from ..exceptions import StreamTransportFailure
from .classifier import classify_line
from .decoder import PayloadDecoder
from .framer import LineFramer
from .models import AssemblerState, LineKind, OutcomeKind, StreamingStats

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], None]

TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    httpx.StreamError,
    OSError,
)


class EfficientStringBuilder:
    """
    Efficient string building for message accumulation.

    Uses StringIO instead of repeated concatenation.
    """

    def __init__(self):
        self._buffer = io.StringIO()

    def append(self, text: str) -> None:
        """Append text efficiently."""
        self._buffer.write(text)

    def get_value(self) -> str:
        """Get the final string value."""
        return self._buffer.getvalue()

    def clear(self) -> None:
        """Clear the buffer for reuse."""
        self._buffer.seek(0)
        self._buffer.truncate(0)


class StreamAssembler:
    """
    Reassembles an SSE completion stream into one assistant message.

    ``on_fragment`` is called with each new fragment (not the cumulative
    text) as soon as it is decoded; ``content`` always holds the in-order
    concatenation of every fragment decoded so far.
    """

    def __init__(
        self,
        on_fragment: FragmentCallback | None = None,
        decoder: PayloadDecoder | None = None,
        provider: str = "unknown",
        model: str = "unknown",
    ):
        self.on_fragment = on_fragment
        self.decoder = decoder or PayloadDecoder()
        self.provider = provider
        self.model = model

        self.framer = LineFramer()
        self.stats = StreamingStats()
        self.state = AssemblerState.STREAMING
        self.finish_reason: str | None = None
        self.error: str | None = None

        self._content = EfficientStringBuilder()
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def content(self) -> str:
        """Cumulative assistant message text."""
        return self._content.get_value()

    def feed(self, chunk: str | bytes) -> list[str]:
        """
        Process one network chunk and return the fragments it produced.

        Chunks received after the assembler reached a terminal state are
        ignored.
        """
        if self.state is not AssemblerState.STREAMING:
            logger.debug("Ignoring chunk received in state %s", self.state.value)
            return []

        self.stats.update_timing(time.time())
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk

        fragments: list[str] = []
        for line in self.framer.feed(text):
            self.stats.lines_framed += 1
            classified = classify_line(line)

            if classified.kind is LineKind.IGNORABLE:
                self.stats.ignored_lines += 1
                continue
            if classified.kind is LineKind.UNRECOGNIZED:
                self.stats.unrecognized_lines += 1
                continue

            outcome = self.decoder.decode(classified.payload or "")
            if outcome.finish_reason:
                self.finish_reason = outcome.finish_reason

            if outcome.kind is OutcomeKind.DONE:
                self._transition(AssemblerState.DONE)
                break

            if outcome.kind is OutcomeKind.FRAGMENT:
                assert outcome.text is not None
                self._append(outcome.text)
                fragments.append(outcome.text)
            elif outcome.kind is OutcomeKind.EMPTY:
                self.stats.empty_payloads += 1
            else:
                # Most likely a payload cut short; retry once more text arrives
                self.stats.requeued_lines += 1
                logger.debug(
                    "Re-queueing unparseable payload (%d chars): %s",
                    len(line), outcome.error,
                )
                self.framer.requeue(line)
                break

        return fragments

    def close(self) -> AssemblerState:
        """Mark the underlying stream as exhausted."""
        if self.state is AssemblerState.STREAMING:
            self._utf8.decode(b"", final=True)
            if self.framer.buffered or self.framer.pending is not None:
                logger.debug(
                    "Stream ended with %d unframed chars and pending=%s",
                    self.framer.buffered,
                    self.framer.pending is not None,
                )
            self._transition(AssemblerState.CLOSED)
        return self.state

    def fail(self, error: BaseException | str) -> AssemblerState:
        """Abort the stream, discarding any accumulated text."""
        if self.state is not AssemblerState.FAILED:
            self.error = str(error) or type(error).__name__
            self.stats.errors.append(self.error)
            self._content.clear()
            self._transition(AssemblerState.FAILED)
        return self.state

    async def consume(self, chunks: AsyncIterable[str | bytes]) -> AssemblerState:
        """
        Drive the assembler over an async chunk source until it terminates.

        Returns DONE or CLOSED. Errors raised while reading the source are
        re-raised as StreamTransportFailure; errors raised while processing
        a chunk (including the fragment callback) and cancellation are
        re-raised unchanged. In every failing case the assembler ends in
        FAILED with its text discarded.
        """
        iterator = aiter(chunks)
        try:
            while not self.state.is_terminal:
                try:
                    chunk = await anext(iterator)
                except StopAsyncIteration:
                    break
                except TRANSPORT_ERRORS as e:
                    raise StreamTransportFailure(
                        f"Stream read failed: {e}",
                        provider=self.provider,
                        model=self.model,
                    ) from e
                self.feed(chunk)
        except asyncio.CancelledError:
            self.fail("cancelled")
            raise
        except StreamTransportFailure as e:
            self.fail(e.__cause__)
            raise
        except Exception as e:
            self.fail(e)
            raise

        return self.close()

    def get_stats(self) -> dict[str, Any]:
        """Get streaming statistics for monitoring."""
        stats = asdict(self.stats)
        stats["state"] = self.state.value
        stats["streaming_duration"] = self.stats.streaming_duration
        stats["first_fragment_latency"] = self.stats.first_fragment_latency
        return stats

    def _append(self, fragment: str) -> None:
        self._content.append(fragment)
        self.stats.fragments += 1
        if self.stats.first_fragment_time is None:
            self.stats.first_fragment_time = time.time()
        if self.on_fragment is not None:
            self.on_fragment(fragment)

    def _transition(self, new_state: AssemblerState) -> None:
        logger.debug(
            "Stream assembler %s -> %s", self.state.value, new_state.value
        )
        self.state = new_state
