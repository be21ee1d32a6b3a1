#!/usr/bin/env python3
"""
Tests for newline framing of chunked SSE text.
"""

import pytest

from streamchat.llm.streaming.framer import LineFramer


class TestLineFramer:
    """Test LineFramer buffering behavior."""

    def test_chunk_without_newline_emits_nothing(self):
        framer = LineFramer()
        assert list(framer.feed("data: {\"cho")) == []
        assert framer.buffered == len("data: {\"cho")

    def test_partial_line_completed_by_next_chunk(self):
        framer = LineFramer()
        assert list(framer.feed("first\nsec")) == ["first"]
        assert list(framer.feed("ond\nthi")) == ["second"]
        assert framer.buffered == 3

    def test_multiple_lines_in_order(self):
        framer = LineFramer()
        assert list(framer.feed("a\nb\n\nc\n")) == ["a", "b", "", "c"]
        assert framer.buffered == 0

    def test_carriage_return_stripped(self):
        framer = LineFramer()
        assert list(framer.feed("data: x\r\n: ping\r\n")) == ["data: x", ": ping"]

    def test_carriage_return_split_from_newline(self):
        framer = LineFramer()
        assert list(framer.feed("data: x\r")) == []
        assert list(framer.feed("\n")) == ["data: x"]

    def test_unconsumed_lines_stay_buffered(self):
        """Abandoning the iterator must not drop the remaining lines."""
        framer = LineFramer()
        lines = framer.feed("a\nb\nc\n")
        assert next(lines) == "a"
        del lines

        assert list(framer.feed("")) == ["b", "c"]

    def test_requeued_line_is_emitted_first(self):
        framer = LineFramer()
        lines = framer.feed("one\ntwo\n")
        first = next(lines)
        framer.requeue(first)
        del lines

        assert framer.pending == "one"
        assert list(framer.feed("three\n")) == ["one", "two", "three"]
        assert framer.pending is None

    def test_only_one_line_can_be_pending(self):
        framer = LineFramer()
        framer.requeue("x")
        with pytest.raises(RuntimeError):
            framer.requeue("y")

    def test_reset_discards_state(self):
        framer = LineFramer()
        list(framer.feed("partial"))
        framer.requeue("line")
        framer.reset()

        assert framer.buffered == 0
        assert framer.pending is None
        assert list(framer.feed("next\n")) == ["next"]
