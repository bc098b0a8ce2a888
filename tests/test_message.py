"""Tests for reflectloop.llm.message."""

from __future__ import annotations

from reflectloop.llm.message import Message, TextPart, ThinkingPart, TokenUsage


# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------


class TestParts:
    def test_text_defaults(self) -> None:
        part = TextPart()
        assert part.type == "text"
        assert part.text == ""

    def test_thinking_defaults(self) -> None:
        part = ThinkingPart()
        assert part.type == "thinking"
        assert part.thinking == ""

    def test_token_usage_defaults(self) -> None:
        usage = TokenUsage()
        assert usage.input_tokens == 0
        assert usage.output_tokens == 0
        assert usage.total_tokens == 0


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------


class TestMessage:
    def test_user(self) -> None:
        msg = Message.user("u")
        assert msg.role == "user"
        assert msg.parts == [TextPart(text="u")]

    def test_empty(self) -> None:
        msg = Message(role="assistant")
        assert msg.text == ""
        assert msg.thinking == ""

    def test_text_skips_thinking(self) -> None:
        msg = Message(
            role="assistant",
            parts=[ThinkingPart(thinking="hmm"), TextPart(text="a"), TextPart(text="b")],
        )
        assert msg.text == "ab"
        assert msg.thinking == "hmm"

    def test_to_openai_dict(self) -> None:
        msg = Message(
            role="assistant",
            parts=[ThinkingPart(thinking="hidden"), TextPart(text="shown")],
        )
        assert msg.to_openai_dict() == {"role": "assistant", "content": "shown"}
