# streamchat/history/repositories/base.py
from __future__ import annotations

from typing import Protocol

from streamchat.history.models import ChatMessage


class ChatRepository(Protocol):
    """
    Interface for storing and retrieving chat history.
    """

    async def append_message(self, message: ChatMessage) -> bool:
        """
        Store a single message, assigning its ``seq``.  Returns True if stored.
        """
        ...

    async def list_messages(self, conversation_id: str) -> list[ChatMessage]:
        """
        Return the messages of a conversation in chronological order.
        """
        ...

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        """
        Remove one message.  Returns False if it was not found.
        """
        ...

    async def delete_all_messages(self, conversation_id: str) -> int:
        """
        Remove every message of a conversation.  Returns the number removed.
        """
        ...

    async def close(self) -> None:
        """
        Release any held resources.
        """
        ...
