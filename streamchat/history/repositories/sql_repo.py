# streamchat/history/repositories/sql_repo.py
from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite

from streamchat.history.models import ChatMessage
from streamchat.history.repositories.base import ChatRepository

logger = logging.getLogger(__name__)


class AsyncSqlRepo(ChatRepository):
    """
    SQL implementation of ChatRepository with configurable persistence.
    Uses SQLite for simplicity; swap aiosqlite with asyncpg or other drivers
    when moving to another database.
    """

    def __init__(
        self,
        db_path: str = "messages.db",
        persistence_config: dict[str, Any] | None = None
    ):
        self.db_path = db_path
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._connection_lock = asyncio.Lock()  # Serialize database access
        self._connection: aiosqlite.Connection | None = None

        # Persistence configuration
        self.persistence_config = persistence_config or {
            "enabled": True,
            "retention_policy": "unlimited",
            "max_messages_per_conversation": 100,
            "retention_days": 30,
            "clear_on_startup": False
        }

    async def _initialize(self) -> None:
        """
        Lazily create tables and indices on first use.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            # Create persistent connection
            self._connection = await aiosqlite.connect(self.db_path)

            # Configure SQLite for better concurrency
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            # 30 second timeout
            await self._connection.execute("PRAGMA busy_timeout=30000")

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS chat_messages (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL
                )
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversation_seq
                ON chat_messages(conversation_id, seq)
            """)
            await self._connection.commit()

            # Handle persistence settings
            await self._handle_persistence_on_startup()
            self._initialized = True

    async def close(self) -> None:
        """
        Close the persistent database connection.
        """
        if self._connection:
            await self._connection.close()
            self._connection = None
            self._initialized = False

    async def __aenter__(self) -> AsyncSqlRepo:
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def _handle_persistence_on_startup(self) -> None:
        """Handle persistence settings during initialization."""
        if self.persistence_config["clear_on_startup"]:
            logger.info("clear_on_startup=True, clearing all conversations")
            await self.clear_all_conversations()
        elif self.persistence_config["enabled"]:
            logger.info(
                "Persistence enabled, applying retention policies to existing data"
            )
            await self._apply_retention_policies()
        else:
            logger.info(
                "Persistence disabled but clear_on_startup=False, "
                "keeping existing data"
            )

    async def clear_all_conversations(self) -> None:
        """Clear all conversation data from the database."""
        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            await self._connection.execute("DELETE FROM chat_messages")
            await self._connection.commit()
            logger.info("Cleared all conversation history")

    async def _apply_retention_policies(self) -> None:
        """Apply the configured retention policy to every conversation."""
        retention_policy = self.persistence_config["retention_policy"]

        if retention_policy == "unlimited":
            return  # No cleanup needed

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute(
                "SELECT DISTINCT conversation_id FROM chat_messages"
            )
            rows = await cursor.fetchall()
            conversations = [row[0] for row in rows]

        for conv_id in conversations:
            await self._apply_retention_to_conversation(conv_id, retention_policy)

    async def _apply_retention_to_conversation(
        self, conversation_id: str, policy: str
    ) -> None:
        """Apply retention policy to a specific conversation."""
        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            if policy == "message_count":
                max_messages = self.persistence_config["max_messages_per_conversation"]
                # Keep only the most recent N messages
                cursor = await self._connection.execute("""
                    DELETE FROM chat_messages
                    WHERE conversation_id = ? AND id NOT IN (
                        SELECT id FROM chat_messages
                        WHERE conversation_id = ?
                        ORDER BY seq DESC
                        LIMIT ?
                    )
                """, (conversation_id, conversation_id, max_messages))

            elif policy == "time_based":
                retention_days = self.persistence_config["retention_days"]
                cutoff_date = (
                    datetime.now(UTC).replace(microsecond=0) -
                    timedelta(days=retention_days)
                )
                cursor = await self._connection.execute("""
                    DELETE FROM chat_messages
                    WHERE conversation_id = ? AND timestamp < ?
                """, (conversation_id, cutoff_date.isoformat()))

            else:
                raise ValueError(f"Unknown retention policy: {policy}")

            await self._connection.commit()
            if cursor.rowcount:
                logger.info(
                    f"Removed {cursor.rowcount} old messages from "
                    f"conversation {conversation_id[:8]}... ({policy})"
                )

    async def append_message(self, message: ChatMessage) -> bool:
        await self._initialize()

        # If persistence is disabled, don't store messages
        if not self.persistence_config["enabled"]:
            return True  # Pretend we stored it successfully

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            # Auto-assign sequence number if not set
            if message.seq is None or message.seq == 0:
                cursor = await self._connection.execute("""
                    SELECT COALESCE(MAX(seq), 0) + 1
                    FROM chat_messages
                    WHERE conversation_id = ?
                """, (message.conversation_id,))
                result = await cursor.fetchone()
                await cursor.close()
                message.seq = result[0] if result else 1

            try:
                await self._connection.execute("""
                    INSERT INTO chat_messages (
                        id, conversation_id, seq, timestamp, role, content
                    ) VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    message.id,
                    message.conversation_id,
                    message.seq,
                    message.timestamp.isoformat(),
                    message.role,
                    message.content,
                ))
                await self._connection.commit()
                return True
            except aiosqlite.IntegrityError:
                # duplicate id
                return False

    async def list_messages(self, conversation_id: str) -> list[ChatMessage]:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute("""
                SELECT id, conversation_id, seq, timestamp, role, content
                FROM chat_messages
                WHERE conversation_id = ?
                ORDER BY seq ASC
            """, (conversation_id,))
            rows = await cursor.fetchall()
            await cursor.close()

        return [self._row_to_message(row) for row in rows]

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute("""
                DELETE FROM chat_messages
                WHERE conversation_id = ? AND id = ?
            """, (conversation_id, message_id))
            await self._connection.commit()
            return cursor.rowcount > 0

    async def delete_all_messages(self, conversation_id: str) -> int:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute(
                "DELETE FROM chat_messages WHERE conversation_id = ?",
                (conversation_id,),
            )
            await self._connection.commit()
            removed = cursor.rowcount
        logger.info(
            f"Deleted {removed} messages from conversation {conversation_id[:8]}..."
        )
        return removed

    async def list_conversations(self) -> list[str]:
        await self._initialize()

        if not self._connection:
            raise RuntimeError("Database connection not available")

        async with self._connection_lock:
            cursor = await self._connection.execute(
                "SELECT DISTINCT conversation_id FROM chat_messages"
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [row[0] for row in rows]

    def _row_to_message(self, row: Any) -> ChatMessage:
        return ChatMessage(
            id=row[0],
            conversation_id=row[1],
            seq=row[2],
            timestamp=datetime.fromisoformat(row[3]),
            role=row[4],
            content=row[5],
        )
