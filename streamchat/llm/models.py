"""
Core LLM dataclasses.

- Provider detection
- Message structures sent to the completion service
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProviderType(Enum):
    """Known completion providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GROQ = "groq"
    SUPABASE = "supabase"
    CUSTOM = "custom"

    @classmethod
    def detect(cls, base_url: str) -> ProviderType:
        """Detect provider type from base URL."""
        base_url_lower = base_url.lower()

        if "openai.com" in base_url_lower:
            return cls.OPENAI
        if "openrouter.ai" in base_url_lower:
            return cls.OPENROUTER
        if "groq.com" in base_url_lower:
            return cls.GROQ
        if "supabase.co" in base_url_lower:
            return cls.SUPABASE

        return cls.CUSTOM


class MessageRole(Enum):
    """Conversation roles sent to the service."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class LLMMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}
