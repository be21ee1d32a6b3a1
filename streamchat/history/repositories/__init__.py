"""Repository implementations for chat history."""

from streamchat.history.repositories.base import ChatRepository
from streamchat.history.repositories.sql_repo import AsyncSqlRepo

__all__ = ["AsyncSqlRepo", "ChatRepository"]
