# streamchat/history/models.py
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from streamchat.llm.models import LLMMessage, MessageRole

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """
    One conversation entry, as rendered and as persisted.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    seq: int | None = None  # Auto-assigned by repository
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    role: Role
    content: str

    def to_llm_message(self) -> LLMMessage:
        """Convert to the record sent to the completion service."""
        return LLMMessage(role=MessageRole(self.role), content=self.content)

    def to_history_entry(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}
