"""
Decoding of OpenAI-compatible ``chat.completion.chunk`` payloads.
"""

from __future__ import annotations

import json
from typing import Any

from .models import DecodedOutcome

DONE_SENTINEL = "[DONE]"


class PayloadDecoder:
    """
    Turns the text of a ``data:`` line into a DecodedOutcome.

    The delta text is read from ``choices[0].delta.content``. A record that
    is valid JSON but lacks any level of that path is EMPTY, not an error;
    only text that fails to parse as JSON is UNPARSEABLE, which lets the
    assembler tell a split payload apart from a role or finish marker.
    """

    def __init__(self, sentinel: str = DONE_SENTINEL):
        self.sentinel = sentinel

    def decode(self, payload: str) -> DecodedOutcome:
        if payload == self.sentinel:
            return DecodedOutcome.done()

        # Bare "data: " heartbeat
        if not payload:
            return DecodedOutcome.empty()

        try:
            record = json.loads(payload)
        except json.JSONDecodeError as e:
            return DecodedOutcome.unparseable(f"JSON decode error: {e}")
        except (ValueError, RecursionError) as e:
            # Well-formed but beyond the parser's limits (huge ints, deep nesting)
            return DecodedOutcome.unparseable(
                f"JSON decode error: {type(e).__name__}: {e}"
            )

        choice = self._first_choice(record)
        if choice is None:
            return DecodedOutcome.empty()

        finish_reason = choice.get("finish_reason")
        if not isinstance(finish_reason, str):
            finish_reason = None

        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            return DecodedOutcome.fragment(content, finish_reason=finish_reason)
        return DecodedOutcome.empty(finish_reason=finish_reason)

    @staticmethod
    def _first_choice(record: Any) -> dict[str, Any] | None:
        if not isinstance(record, dict):
            return None
        choices = record.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        return choice if isinstance(choice, dict) else None
