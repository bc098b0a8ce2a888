"""Streaming generation primitive."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from reflectloop.llm.message import (
    ContentPart,
    Message,
    TextPart,
    ThinkingPart,
    TokenUsage,
)
from reflectloop.llm.provider import ChatProvider

logger = logging.getLogger(__name__)

OnText = Callable[[str], None] | None


@dataclass
class GenerateResult:
    """Result of a single LLM generation."""

    message: Message
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str | None = None

    @property
    def text(self) -> str:
        return self.message.text

    @property
    def truncated(self) -> bool:
        """Did the model stop because it ran out of output tokens?"""
        return self.finish_reason == "length"


async def generate(
    provider: ChatProvider,
    system: str,
    messages: list[Message],
    on_text: OnText = None,
) -> GenerateResult:
    """Stream one LLM response and accumulate it into a single message."""
    api_messages = [m.to_openai_dict() for m in messages]

    text_buffer = ""
    thinking_buffer = ""
    usage = TokenUsage()
    finish_reason = None

    async for chunk in provider.stream(system, api_messages):
        fr = chunk.get("finish_reason")
        if fr:
            finish_reason = fr

        delta = chunk.get("delta", {})

        reasoning = delta.get("reasoning_content")
        if reasoning:
            thinking_buffer += reasoning

        content = delta.get("content")
        if content:
            text_buffer += content
            if on_text:
                on_text(content)
                # Yield control so listeners can process the event
                await asyncio.sleep(0)

        if "usage" in chunk:
            u = chunk["usage"]
            usage = TokenUsage(
                input_tokens=u.get("prompt_tokens", 0),
                output_tokens=u.get("completion_tokens", 0),
                total_tokens=u.get("total_tokens", 0),
            )

    parts: list[ContentPart] = []
    if thinking_buffer:
        parts.append(ThinkingPart(thinking=thinking_buffer))
    if text_buffer:
        parts.append(TextPart(text=text_buffer))

    if finish_reason == "length":
        logger.warning("Generation hit max_tokens (%d output tokens)", usage.output_tokens)

    message = Message(role="assistant", parts=parts)
    return GenerateResult(message=message, usage=usage, finish_reason=finish_reason)
