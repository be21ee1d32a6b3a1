#!/usr/bin/env python3
"""
Tests for SSE line classification.
"""

import pytest

from streamchat.llm.streaming import LineKind, classify_line


class TestClassifyLine:
    """Test classify_line."""

    @pytest.mark.parametrize("line", [": keep-alive", ":", ": OPENROUTER PROCESSING"])
    def test_comments_are_ignorable(self, line):
        assert classify_line(line).kind is LineKind.IGNORABLE

    @pytest.mark.parametrize("line", ["", "   ", "\t"])
    def test_blank_lines_are_ignorable(self, line):
        assert classify_line(line).kind is LineKind.IGNORABLE

    def test_data_line_payload_is_stripped(self):
        classified = classify_line('data:   {"a": 1}  ')
        assert classified.kind is LineKind.DATA
        assert classified.payload == '{"a": 1}'
        assert classified.raw == 'data:   {"a": 1}  '

    def test_done_sentinel_is_data(self):
        classified = classify_line("data: [DONE]")
        assert classified.kind is LineKind.DATA
        assert classified.payload == "[DONE]"

    @pytest.mark.parametrize(
        "line",
        ["event: message", "id: 42", "retry: 1000", 'data:{"a": 1}', "garbage"],
    )
    def test_other_fields_are_unrecognized(self, line):
        classified = classify_line(line)
        assert classified.kind is LineKind.UNRECOGNIZED
        assert classified.payload is None
