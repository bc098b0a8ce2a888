"""Message types for the LLM abstraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class TextPart:
    """A text content part."""

    type: Literal["text"] = "text"
    text: str = ""


@dataclass
class ThinkingPart:
    """Reasoning content returned by models with thinking enabled.

    Kept apart from the text so it never leaks into parsed findings or
    revised artifacts.
    """

    type: Literal["thinking"] = "thinking"
    thinking: str = ""


ContentPart = TextPart | ThinkingPart


@dataclass
class TokenUsage:
    """Token usage stats from an LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Message:
    """A conversation message with typed content parts."""

    role: Literal["system", "user", "assistant"]
    parts: list[ContentPart] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Get concatenated text content."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def thinking(self) -> str:
        """Get concatenated thinking/reasoning content."""
        return "".join(p.thinking for p in self.parts if isinstance(p, ThinkingPart))

    # --- Convenience constructors ---

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", parts=[TextPart(text=text)])

    def to_openai_dict(self) -> dict[str, Any]:
        """Convert to OpenAI API format."""
        return {"role": self.role, "content": self.text}
