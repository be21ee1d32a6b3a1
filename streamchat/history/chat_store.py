"""
Chat History Storage Module

Async JSONL storage for chat messages with cross-process file locking.

Key Components:
- async_file_lock: filelock-based lock usable from async code
- AsyncJsonlRepo: append-only JSONL repository implementing ChatRepository

Appends write one line per message; deletions rewrite the file to a
temporary sibling and atomically replace the original, both under the
cross-process lock.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

import aiofiles
from filelock import FileLock, Timeout

from streamchat.history.models import ChatMessage
from streamchat.history.repositories.base import ChatRepository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def async_file_lock(
    file_path: str, timeout: float = 30.0
) -> AsyncGenerator[None]:
    """
    Async context manager for cross-process file locking with timeout.

    Creates a lock file alongside the target file and holds it for the
    duration of the block. Blocking acquisition runs in the default executor.

    Raises:
        TimeoutError: If the lock cannot be acquired within the timeout period
    """
    lock_path = f"{file_path}.lock"
    # Acquire and release may run on different executor threads
    file_lock = FileLock(lock_path, timeout=timeout, thread_local=False)
    loop = asyncio.get_running_loop()

    try:
        await loop.run_in_executor(None, file_lock.acquire)
    except Timeout as e:
        raise TimeoutError(f"Failed to acquire file lock within {timeout}s") from e

    try:
        yield
    finally:
        # Ignore release errors - lock will be cleaned up by system
        with suppress(Exception):
            await loop.run_in_executor(None, file_lock.release)


class AsyncJsonlRepo(ChatRepository):
    """
    Async JSONL implementation of ChatRepository.

    Messages are cached in memory per conversation after the first load.
    ``fsync_enabled`` forces each write to persistent storage.
    """

    def __init__(self, path: str = "messages.jsonl", fsync_enabled: bool = True):
        self.path = path
        self.fsync_enabled = fsync_enabled
        self._lock = asyncio.Lock()
        self._by_conv: dict[str, list[ChatMessage]] = {}
        self._loaded = False

    async def _ensure_loaded(self) -> None:
        """Ensure data is loaded from file. Called automatically on first access."""
        if self._loaded:
            return

        async with self._lock:
            if self._loaded:  # Double-check with lock held
                return
            await self._load_async()
            self._loaded = True

    async def _load_async(self) -> None:
        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                async for file_line in f:
                    stripped_line = file_line.strip()
                    if not stripped_line:
                        continue

                    try:
                        message = ChatMessage.model_validate_json(stripped_line)
                    except ValueError as e:
                        logger.warning(f"Skipping invalid line in {self.path}: {e}")
                        continue
                    self._by_conv.setdefault(message.conversation_id, []).append(
                        message
                    )
        except FileNotFoundError:
            # File doesn't exist yet - this is fine for new repositories
            pass

        for messages in self._by_conv.values():
            messages.sort(key=lambda m: m.seq or 0)

    def _next_seq(self, conversation_id: str) -> int:
        """Next sequence number for a conversation. Must be called with lock held."""
        messages = self._by_conv.get(conversation_id, [])
        return max((m.seq or 0 for m in messages), default=0) + 1

    async def _append_async(self, message: ChatMessage) -> None:
        async with (
            async_file_lock(self.path),
            aiofiles.open(self.path, "a", encoding="utf-8") as f,
        ):
            await f.write(message.model_dump_json() + "\n")
            await f.flush()
            if self.fsync_enabled:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, os.fsync, f.fileno())

    async def _rewrite_async(self) -> None:
        """Rewrite the whole file from the in-memory state."""
        tmp_path = f"{self.path}.tmp"
        async with async_file_lock(self.path):
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                for messages in self._by_conv.values():
                    for message in messages:
                        await f.write(message.model_dump_json() + "\n")
                await f.flush()
                if self.fsync_enabled:
                    loop = asyncio.get_running_loop()
                    await loop.run_in_executor(None, os.fsync, f.fileno())
            os.replace(tmp_path, self.path)

    async def append_message(self, message: ChatMessage) -> bool:
        await self._ensure_loaded()

        async with self._lock:
            messages = self._by_conv.setdefault(message.conversation_id, [])
            if any(m.id == message.id for m in messages):
                return False

            message.seq = self._next_seq(message.conversation_id)
            await self._append_async(message)
            messages.append(message)
            return True

    async def list_messages(self, conversation_id: str) -> list[ChatMessage]:
        await self._ensure_loaded()

        async with self._lock:
            return list(self._by_conv.get(conversation_id, []))

    async def delete_message(self, conversation_id: str, message_id: str) -> bool:
        await self._ensure_loaded()

        async with self._lock:
            messages = self._by_conv.get(conversation_id, [])
            remaining = [m for m in messages if m.id != message_id]
            if len(remaining) == len(messages):
                return False
            self._by_conv[conversation_id] = remaining
            await self._rewrite_async()
            return True

    async def delete_all_messages(self, conversation_id: str) -> int:
        await self._ensure_loaded()

        async with self._lock:
            removed = len(self._by_conv.pop(conversation_id, []))
            if removed:
                await self._rewrite_async()
        logger.info(
            f"Deleted {removed} messages from conversation {conversation_id[:8]}..."
        )
        return removed

    async def list_conversations(self) -> list[str]:
        await self._ensure_loaded()

        async with self._lock:
            return list(self._by_conv.keys())

    async def close(self) -> None:
        """Nothing is held open between operations."""
        return None
