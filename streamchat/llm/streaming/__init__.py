"""
Streaming functionality for LLM clients.

- Line framing of chunked text (framer)
- SSE line classification (classifier)
- Completion chunk decoding (decoder)
- Message reassembly and recovery (assembler)
"""

from __future__ import annotations

from .assembler import StreamAssembler
from .classifier import classify_line
from .decoder import DONE_SENTINEL, PayloadDecoder
from .framer import LineFramer
from .models import (
    AssemblerState,
    ClassifiedLine,
    DecodedOutcome,
    LineKind,
    OutcomeKind,
    StreamingStats,
)

__all__ = [
    "DONE_SENTINEL",
    "AssemblerState",
    "ClassifiedLine",
    "DecodedOutcome",
    "LineFramer",
    "LineKind",
    "OutcomeKind",
    "PayloadDecoder",
    "StreamAssembler",
    "StreamingStats",
    "classify_line",
]
