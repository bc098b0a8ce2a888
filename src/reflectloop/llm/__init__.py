"""LLM abstraction layer — unified via litellm with streaming."""

from reflectloop.llm.message import (
    Message,
    ContentPart,
    TextPart,
    ThinkingPart,
    TokenUsage,
)
from reflectloop.llm.provider import (
    ChatProvider,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
)
from reflectloop.llm.streaming import generate, GenerateResult

__all__ = [
    "Message",
    "ContentPart",
    "TextPart",
    "ThinkingPart",
    "TokenUsage",
    "ChatProvider",
    "LiteLLMProvider",
    "ProviderConfig",
    "create_provider",
    "generate",
    "GenerateResult",
]
