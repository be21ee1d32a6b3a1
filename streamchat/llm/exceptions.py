"""
Error handling for completion-service operations.

Only transport-level failures are modelled as exceptions:
- TransportRejected: the request never produced a streamable body
- StreamTransportFailure: the body errored while it was being read

Malformed payload lines are not exceptions; the stream assembler absorbs
them (see ``streamchat.llm.streaming.assembler``).
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


class TransportRejected(LLMError):
    """Outbound request failed or returned no streamable body."""
    pass


class StreamTransportFailure(LLMError):
    """The response stream errored mid-read."""
    pass
