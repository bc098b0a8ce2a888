"""Chat model access for the generation roles, routed through litellm.

litellm picks the backend from the model string prefix and reads API keys
from the environment. Its OpenAI-style stream chunks are reduced to the
small dicts ``streaming.generate`` consumes:

    {
        "finish_reason": str | None,
        "delta": {"content": str, "reasoning_content": str},  # both optional
        "usage": {"prompt_tokens": int, "completion_tokens": int,
                  "total_tokens": int},                       # last chunk only
    }
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from litellm import CustomStreamWrapper, ModelResponse, ModelResponseStream

logger = logging.getLogger(__name__)

# litellm exception class names worth another attempt
_TRANSIENT_LITELLM_ERRORS = (
    "APIConnectionError",
    "RateLimitError",
    "ServiceUnavailableError",
    "InternalServerError",
    "Timeout",
)


@dataclass
class ProviderConfig:
    """Model selection and request settings for one role."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    reasoning_effort: str | None = None  # "low", "medium", or "high"
    request_timeout: float | None = None  # seconds, per request
    max_attempts: int = 3


@runtime_checkable
class ChatProvider(Protocol):
    """Anything that can stream a chat completion as normalized chunks."""

    @property
    def config(self) -> ProviderConfig: ...

    def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]: ...


@dataclass
class LiteLLMProvider:
    """ChatProvider backed by ``litellm.acompletion``."""

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def request_kwargs(
        self, system: str, messages: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Build the litellm request; unset options are left to the backend."""
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        optional = {
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "reasoning_effort": self._config.reasoning_effort,
            "timeout": self._config.request_timeout,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})
        return kwargs

    async def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]:
        kwargs = self.request_kwargs(system, messages)
        response = await _acompletion_with_retry(self._config.max_attempts, **kwargs)
        async for chunk in response:  # type: ignore[union-attr]
            yield _chunk_to_dict(chunk)


def _is_transient(exc: BaseException) -> bool:
    """Network trouble, rate limits and 5xx answers are retried; the rest is not."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    return type(exc).__name__ in _TRANSIENT_LITELLM_ERRORS


async def _acompletion_with_retry(
    max_attempts: int = 3, **kwargs: Any
) -> CustomStreamWrapper | ModelResponse:
    """Open a completion stream, backing off on transient failures."""
    import litellm

    retrying = AsyncRetrying(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await litellm.acompletion(**kwargs)
    raise RuntimeError("unreachable: tenacity always returns or reraises")


def _chunk_to_dict(chunk: ModelResponseStream) -> dict[str, Any]:
    result: dict[str, Any] = {"finish_reason": None, "delta": {}}

    choices = getattr(chunk, "choices", None)
    if choices:
        choice = choices[0]
        result["finish_reason"] = choice.finish_reason
        for key in ("content", "reasoning_content"):
            value = getattr(choice.delta, key, None)
            if value is not None:
                result["delta"][key] = value

    usage = getattr(chunk, "usage", None)
    if usage:
        result["usage"] = {
            key: getattr(usage, key, 0) or 0
            for key in ("prompt_tokens", "completion_tokens", "total_tokens")
        }

    return result


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
    reasoning_effort: str | None = None,
    request_timeout: float | None = None,
) -> ChatProvider:
    """Create the provider for one generation role.

    Args:
        model: litellm model string with provider prefix (e.g. "openai/gpt-4o").
        temperature: Sampling temperature; ``None`` keeps the backend default.
        max_tokens: Output token cap.
        reasoning_effort: "low", "medium" or "high"; ``None`` disables it.
        request_timeout: Per-request timeout in seconds.
    """
    return LiteLLMProvider(
        _config=ProviderConfig(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            reasoning_effort=reasoning_effort,
            request_timeout=request_timeout,
        )
    )
