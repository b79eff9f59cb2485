"""Tests for model reply normalization.

Tests cover:
- Reasoning token stripping
- Strict JSON object parse
- Fenced code block extraction
- Unstructured fallback wrapper and truncation
"""

import pytest

from op_monitor.providers.parsing import parse_response, strip_reasoning_tokens


class TestStripReasoningTokens:
    """Test chain-of-thought removal."""

    def test_think_block(self) -> None:
        """Test a leading <think> block is removed."""
        text = '<think>weighing options</think>\n{"summary": "ok"}'

        assert strip_reasoning_tokens(text) == '{"summary": "ok"}'

    def test_implicit_opening_tag(self) -> None:
        """Test reasoning with only a closing tag is removed."""
        assert strip_reasoning_tokens("hmm, let me see</think>answer") == "answer"

    def test_reasoning_block(self) -> None:
        """Test <reasoning> blocks are removed."""
        assert strip_reasoning_tokens("<reasoning>x</reasoning>done") == "done"

    def test_no_tokens(self) -> None:
        """Test plain text passes through unchanged."""
        assert strip_reasoning_tokens("plain answer") == "plain answer"

    def test_only_reasoning_keeps_original(self) -> None:
        """Test text that is only reasoning is returned as-is."""
        text = "<think>nothing else</think>"

        assert strip_reasoning_tokens(text) == text

    def test_empty(self) -> None:
        """Test empty input."""
        assert strip_reasoning_tokens("") == ""


class TestParseResponse:
    """Test the two-tier parse."""

    def test_json_object(self) -> None:
        """Test a JSON object reply is returned as parsed."""
        result = parse_response('{"summary": "ok", "riskLevel": "high"}')

        assert result == {"summary": "ok", "riskLevel": "high"}

    def test_fenced_block(self) -> None:
        """Test JSON inside a markdown fence is extracted."""
        reply = 'Here you go:\n```json\n{"summary": "fenced"}\n```\nThanks.'

        assert parse_response(reply) == {"summary": "fenced"}

    def test_json_after_reasoning(self) -> None:
        """Test reasoning tokens are stripped before parsing."""
        assert parse_response('<think>...</think>{"a": 1}') == {"a": 1}

    def test_plain_text(self) -> None:
        """Test free text becomes an unstructured result."""
        result = parse_response("Looks like routine reconnaissance.")

        assert result["parsed"] is False
        assert result["summary"] == "Looks like routine reconnaissance."
        assert result["fullContent"] == "Looks like routine reconnaissance."
        assert "timestamp" in result

    @pytest.mark.parametrize("reply", ["[1, 2, 3]", '"just a string"', "42", "null"])
    def test_non_object_json_is_unstructured(self, reply: str) -> None:
        """Test JSON that is not an object is treated as text."""
        result = parse_response(reply)

        assert result["parsed"] is False
        assert result["fullContent"] == reply

    def test_long_text_truncated(self) -> None:
        """Test the summary is cut at 500 characters with an ellipsis."""
        reply = "x" * 600

        result = parse_response(reply)

        assert result["summary"] == "x" * 500 + "..."
        assert result["fullContent"] == reply

    def test_exactly_500_not_marked(self) -> None:
        """Test no ellipsis when nothing was cut."""
        result = parse_response("y" * 500)

        assert result["summary"] == "y" * 500

    def test_malformed_json(self) -> None:
        """Test malformed JSON never raises."""
        result = parse_response('{"summary": "oops"')

        assert result["parsed"] is False

    def test_empty_reply(self) -> None:
        """Test an empty reply becomes an empty unstructured result."""
        result = parse_response("")

        assert result["parsed"] is False
        assert result["summary"] == ""
