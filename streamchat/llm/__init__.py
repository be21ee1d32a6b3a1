"""
LLM integration for streamchat.

This package provides:
- A streaming HTTP client for OpenAI-compatible chat completions
- An incremental SSE decoder (``streamchat.llm.streaming``)
- Transport error types
"""

from __future__ import annotations

from .client import LLMClient
from .exceptions import LLMError, StreamTransportFailure, TransportRejected
from .models import LLMMessage, MessageRole, ProviderType

__all__ = [
    # Client
    "LLMClient",
    # Exceptions
    "LLMError",
    # Core models
    "LLMMessage",
    "MessageRole",
    "ProviderType",
    "StreamTransportFailure",
    "TransportRejected",
]
