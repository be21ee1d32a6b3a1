"""
Streaming-specific dataclasses for the incremental SSE decoder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LineKind(Enum):
    """Classification of a single framed SSE line."""
    IGNORABLE = "ignorable"
    DATA = "data"
    UNRECOGNIZED = "unrecognized"


class OutcomeKind(Enum):
    """Result of decoding one data payload."""
    DONE = "done"
    FRAGMENT = "fragment"
    EMPTY = "empty"
    UNPARSEABLE = "unparseable"


class AssemblerState(Enum):
    """States of the stream assembler."""
    STREAMING = "streaming"
    DONE = "done"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not AssemblerState.STREAMING


@dataclass(frozen=True)
class ClassifiedLine:
    """One framed line tagged with its kind."""
    kind: LineKind
    raw: str
    payload: str | None = None


@dataclass(frozen=True)
class DecodedOutcome:
    """Outcome of decoding a data payload."""
    kind: OutcomeKind
    text: str | None = None
    error: str | None = None
    finish_reason: str | None = None

    @classmethod
    def done(cls) -> DecodedOutcome:
        return cls(kind=OutcomeKind.DONE)

    @classmethod
    def fragment(cls, text: str, finish_reason: str | None = None) -> DecodedOutcome:
        return cls(kind=OutcomeKind.FRAGMENT, text=text, finish_reason=finish_reason)

    @classmethod
    def empty(cls, finish_reason: str | None = None) -> DecodedOutcome:
        return cls(kind=OutcomeKind.EMPTY, finish_reason=finish_reason)

    @classmethod
    def unparseable(cls, error: str) -> DecodedOutcome:
        return cls(kind=OutcomeKind.UNPARSEABLE, error=error)


@dataclass
class StreamingStats:
    """Mutable counters describing one assembled stream."""
    chunks_received: int = 0
    lines_framed: int = 0
    fragments: int = 0
    empty_payloads: int = 0
    ignored_lines: int = 0
    unrecognized_lines: int = 0
    requeued_lines: int = 0
    first_chunk_time: float | None = None
    last_chunk_time: float | None = None
    first_fragment_time: float | None = None
    errors: list[str] = field(default_factory=list)

    def update_timing(self, timestamp: float) -> None:
        """Update timing information for latency tracking."""
        if self.first_chunk_time is None:
            self.first_chunk_time = timestamp
        self.last_chunk_time = timestamp
        self.chunks_received += 1

    @property
    def streaming_duration(self) -> float:
        """Calculate total streaming duration."""
        if self.first_chunk_time is None or self.last_chunk_time is None:
            return 0.0
        return self.last_chunk_time - self.first_chunk_time

    @property
    def first_fragment_latency(self) -> float:
        """Seconds between the first chunk and the first decoded fragment."""
        if self.first_chunk_time is None or self.first_fragment_time is None:
            return 0.0
        return self.first_fragment_time - self.first_chunk_time
