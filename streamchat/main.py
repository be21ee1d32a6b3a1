"""
Interactive console chat.

Run with ``python -m streamchat.main``. Type a message to chat, ``/clear`` to
delete the conversation history and ``/quit`` (or Ctrl-D) to exit.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import signal
import sys
import threading
from collections import deque
from typing import TextIO

from streamchat.chat_session import ChatSession
from streamchat.config import Configuration
from streamchat.history.chat_store import AsyncJsonlRepo
from streamchat.history.repositories.base import ChatRepository
from streamchat.history.repositories.sql_repo import AsyncSqlRepo
from streamchat.llm.client import LLMClient
from streamchat.llm.streaming import LineFramer
from streamchat.logging_utils import configure_logging

logger = logging.getLogger(__name__)

CLEAR_COMMAND = "/clear"
QUIT_COMMAND = "/quit"


class ConsoleRenderer:
    """RenderSink writing the streamed reply to a text stream."""

    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout
        self._shown = 0

    def start_turn(self) -> None:
        self._shown = 0
        self.out.write("assistant> ")
        self.out.flush()

    def on_fragment(self, cumulative_text: str) -> None:
        # Only the unseen suffix; the console cannot rewrite earlier output
        self.out.write(cumulative_text[self._shown:])
        self.out.flush()
        self._shown = len(cumulative_text)

    def on_turn_error(self, message: str) -> None:
        self.out.write(f"\n[error] {message}\n")
        self.out.flush()

    def end_turn(self) -> None:
        self.out.write("\n")
        self.out.flush()


def create_repository(config: Configuration) -> ChatRepository:
    """Create the chat history repository selected in configuration."""
    repo_config = config.get_repository_config()

    if repo_config["backend"] == "jsonl":
        return AsyncJsonlRepo(
            repo_config["path"], fsync_enabled=repo_config.get("fsync", True)
        )
    return AsyncSqlRepo(repo_config["path"], repo_config["persistence"])


class ConsoleInput:
    """
    Line reader for stdin that never holds up interpreter shutdown.

    A daemon thread reads the raw descriptor with ``os.read`` and hands each
    chunk to the event loop. The thread is not joined by ``asyncio.run`` and
    holds no lock on ``sys.stdin``, so cancelling a pending ``read_line``
    lets the process exit at once.
    """

    def __init__(self, fd: int | None = None, out: TextIO | None = None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self.out = out or sys.stdout
        self.reader_thread: threading.Thread | None = None
        self._chunks: asyncio.Queue[bytes] | None = None
        self._framer = LineFramer()
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._ready: deque[str] = deque()
        self._eof = False

    def start(self) -> None:
        """Start the reader thread on the running loop."""
        if self.reader_thread is not None:
            return
        loop = asyncio.get_running_loop()
        self._chunks = asyncio.Queue()
        self.reader_thread = threading.Thread(
            target=self._read_chunks,
            args=(loop, self._chunks),
            name="console-stdin",
            daemon=True,
        )
        self.reader_thread.start()

    async def read_line(self, prompt: str) -> str | None:
        """Show ``prompt`` and wait for the next line; None at end of input."""
        self.start()
        self.out.write(prompt)
        self.out.flush()

        while not self._ready and not self._eof:
            chunk = await self._chunks.get()
            if chunk:
                self._ready.extend(self._framer.feed(self._utf8.decode(chunk)))
                continue
            self._eof = True
            tail = self._utf8.decode(b"", final=True)
            if tail or self._framer.buffered:
                self._ready.extend(self._framer.feed(tail + "\n"))

        return self._ready.popleft() if self._ready else None

    def _read_chunks(
        self, loop: asyncio.AbstractEventLoop, chunks: asyncio.Queue[bytes]
    ) -> None:
        while True:
            try:
                chunk = os.read(self.fd, 4096)
            except OSError as e:
                logger.warning(f"Reading stdin failed: {e}")
                chunk = b""
            try:
                loop.call_soon_threadsafe(chunks.put_nowait, chunk)
            except RuntimeError:
                # Loop already closed during shutdown
                return
            if not chunk:
                return


async def run_console(
    session: ChatSession, renderer: ConsoleRenderer, console_input: ConsoleInput
) -> None:
    """Prompt for messages until the user quits."""
    for message in await session.load():
        renderer.out.write(f"{message.role}> {message.content}\n")

    while True:
        line = await console_input.read_line("you> ")
        if line is None or line.strip() == QUIT_COMMAND:
            return

        text = line.strip()
        if not text:
            continue
        if text == CLEAR_COMMAND:
            await session.clear()
            renderer.out.write("History cleared.\n")
            continue

        renderer.start_turn()
        result = await session.send(text)
        if result.ok:
            renderer.end_turn()


async def main() -> None:
    """Main entry point - console interface with graceful shutdown handling."""
    config = Configuration()
    configure_logging(config.get_logging_config())

    chat_config = config.get_chat_config()
    streaming_config = config.get_streaming_config()
    repo = create_repository(config)
    renderer = ConsoleRenderer()

    # Setup graceful shutdown handler
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        """Handle shutdown signals gracefully."""
        logger.info("Received shutdown signal, initiating graceful shutdown...")
        shutdown_event.set()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    async with LLMClient(
        config.get_llm_config(),
        config.llm_api_key,
        http_config=config.get_http_client_config(),
    ) as llm_client:
        session = ChatSession(
            ChatSession.ChatSessionConfig(
                conversation_id=chat_config["conversation_id"],
                llm_client=llm_client,
                repo=repo,
                render=renderer,
                error_message=chat_config["error_message"],
                sentinel=streaming_config["sentinel"],
            )
        )
        try:
            console_task = asyncio.create_task(
                run_console(session, renderer, ConsoleInput())
            )

            # Wait for either the user quitting or a shutdown signal
            done, pending = await asyncio.wait(
                [console_task, asyncio.create_task(shutdown_event.wait())],
                return_when=asyncio.FIRST_COMPLETED,
            )

            # Cancelling an in-flight turn rolls it back
            for task in pending:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            for task in done:
                if task == console_task:
                    exception = task.exception()
                    if exception is not None:
                        raise exception

        except Exception as e:
            logger.error(f"Application error: {e}")
            raise
        finally:
            await repo.close()
            logger.info("Application shutdown complete")


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
