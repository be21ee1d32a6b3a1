"""
Chat session orchestration.

A ChatSession owns one conversation: it keeps the in-memory history that the
UI renders, sends each turn to the completion service, feeds the streamed
reply through a StreamAssembler and persists the result.

A turn either completes (the assistant reply is persisted when non-empty) or
is rolled back: the history is truncated to its pre-turn length, the
persisted user entry is deleted and the render sink receives exactly one
error notification. Nothing of a failed reply is ever persisted.

Callers must not start a new ``send`` while one is in flight; ``is_loading``
is exposed so the UI can disable input.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

from streamchat.history.models import ChatMessage
from streamchat.llm.streaming import (
    DONE_SENTINEL,
    AssemblerState,
    PayloadDecoder,
    StreamAssembler,
)
from streamchat import logging_utils
from streamchat.logging_utils import (
    ChatErrorHandler,
    log_operation,
    operation_context,
)

DEFAULT_ERROR_MESSAGE = "Failed to send message. Please try again."


class RenderSink(Protocol):
    """UI collaborator notified as a turn progresses."""

    def on_fragment(self, cumulative_text: str) -> None:
        """Show the assistant reply accumulated so far."""
        ...

    def on_turn_error(self, message: str) -> None:
        """Tell the user the turn failed."""
        ...


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one ``ChatSession.send``."""
    state: AssemblerState
    content: str = ""
    error: str | None = None
    error_category: str | None = None

    @property
    def ok(self) -> bool:
        return self.state in (AssemblerState.DONE, AssemblerState.CLOSED)


class ChatSession:
    """
    Conversation orchestrator
    1. Records your message
    2. Sends the whole conversation to the completion service
    3. Streams the reply back into the history as it arrives
    4. Persists the turn, or undoes it if the stream failed
    """

    class ChatSessionConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        conversation_id: str
        llm_client: Any  # LLMClient
        repo: Any  # ChatRepository
        render: Any | None = None  # RenderSink
        error_message: str = DEFAULT_ERROR_MESSAGE
        sentinel: str = DONE_SENTINEL

    def __init__(self, session_config: ChatSession.ChatSessionConfig):
        self.conversation_id = session_config.conversation_id
        self.llm_client = session_config.llm_client
        self.repo = session_config.repo
        self.render = session_config.render
        self.error_message = session_config.error_message
        self.sentinel = session_config.sentinel

        self.messages: list[ChatMessage] = []
        self.is_loading = False
        self._log = logging_utils.logger.bind(conversation_id=self.conversation_id)

    @property
    def history(self) -> list[dict[str, str]]:
        """The conversation as ``{role, content}`` records."""
        return [message.to_history_entry() for message in self.messages]

    @log_operation("load_history")
    async def load(self) -> list[ChatMessage]:
        """Replace the in-memory history with the persisted one."""
        self.messages = await self.repo.list_messages(self.conversation_id)
        self._log.debug("History loaded", message_count=len(self.messages))
        return self.messages

    @log_operation("clear_history")
    async def clear(self) -> None:
        """Delete all persisted history and reset in-memory state."""
        await self.repo.delete_all_messages(self.conversation_id)
        self.messages = []

    async def send(self, user_text: str) -> TurnResult:
        """
        Run one turn: send ``user_text`` with the prior history and stream
        the reply into ``messages``.

        Transport failures are reported through the render sink and the
        returned TurnResult rather than raised. Cancellation rolls the turn
        back and propagates.
        """
        turn_start = len(self.messages)
        user_message = ChatMessage(
            conversation_id=self.conversation_id, role="user", content=user_text
        )
        outbound = [m.to_llm_message() for m in (*self.messages, user_message)]

        self.messages.append(user_message)
        self.is_loading = True

        assistant_message: ChatMessage | None = None

        def on_fragment(_fragment: str) -> None:
            nonlocal assistant_message
            cumulative = assembler.content
            if assistant_message is None:
                assistant_message = ChatMessage(
                    conversation_id=self.conversation_id,
                    role="assistant",
                    content=cumulative,
                )
                self.messages.append(assistant_message)
            else:
                assistant_message.content = cumulative
            if self.render is not None:
                self.render.on_fragment(cumulative)

        assembler = StreamAssembler(
            on_fragment=on_fragment,
            decoder=PayloadDecoder(sentinel=self.sentinel),
            provider=self._provider_name(),
            model=getattr(self.llm_client, "model", "unknown"),
        )
        user_persisted = False

        try:
            async with operation_context(
                "chat_turn", context={"conversation_id": self.conversation_id}
            ) as turn_log:
                await self.repo.append_message(user_message)
                user_persisted = True

                async with self.llm_client.stream_chat(outbound) as chunks:
                    state = await assembler.consume(chunks)

                content = assembler.content
                if content and assistant_message is not None:
                    assistant_message.content = content
                    await self.repo.append_message(assistant_message)

                turn_log.info(
                    "Turn finished",
                    state=state.value,
                    finish_reason=assembler.finish_reason,
                    fragments=assembler.stats.fragments,
                    requeued_lines=assembler.stats.requeued_lines,
                )
            return TurnResult(state=state, content=content)

        except asyncio.CancelledError:
            assembler.fail("cancelled")
            await self._rollback(turn_start, user_message if user_persisted else None)
            raise

        except Exception as e:
            assembler.fail(e)
            category = ChatErrorHandler.classify_error(e)
            await self._rollback(turn_start, user_message if user_persisted else None)
            if self.render is not None:
                self.render.on_turn_error(self.error_message)
            return TurnResult(
                state=AssemblerState.FAILED,
                error=str(e),
                error_category=category,
            )

        finally:
            self.is_loading = False

    async def _rollback(
        self, turn_start: int, persisted_user: ChatMessage | None
    ) -> None:
        """Undo a failed turn in memory and in the repository."""
        del self.messages[turn_start:]
        if persisted_user is None:
            return

        try:
            await self.repo.delete_message(self.conversation_id, persisted_user.id)
        except Exception as e:
            self._log.warning(
                "Failed to remove persisted user message",
                message_id=persisted_user.id,
                error=str(e),
            )

    def _provider_name(self) -> str:
        provider_type = getattr(self.llm_client, "provider_type", None)
        return provider_type.value if provider_type is not None else "unknown"
