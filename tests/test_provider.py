"""Tests for reflectloop.llm.provider (request shape, retries, chunk normalization)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from reflectloop.llm.provider import (
    LiteLLMProvider,
    ProviderConfig,
    _acompletion_with_retry,
    _chunk_to_dict,
    _is_transient,
    create_provider,
)


class RateLimitError(Exception):
    """Stand-in carrying the name of litellm's rate-limit error."""


# ---------------------------------------------------------------------------
# ProviderConfig / create_provider
# ---------------------------------------------------------------------------


class TestProviderConfig:
    def test_defaults(self) -> None:
        config = ProviderConfig(model="test/model")
        assert config.model == "test/model"
        assert config.temperature is None
        assert config.max_tokens is None
        assert config.reasoning_effort is None
        assert config.request_timeout is None
        assert config.max_attempts == 3


class TestCreateProvider:
    def test_returns_litellm_provider(self) -> None:
        provider = create_provider("test/model")
        assert isinstance(provider, LiteLLMProvider)

    def test_config_propagated(self) -> None:
        provider = create_provider(
            "openai/gpt-4o",
            temperature=0.7,
            max_tokens=2048,
            reasoning_effort="medium",
            request_timeout=30.0,
        )
        assert provider.config.model == "openai/gpt-4o"
        assert provider.config.temperature == 0.7
        assert provider.config.max_tokens == 2048
        assert provider.config.reasoning_effort == "medium"
        assert provider.config.request_timeout == 30.0


# ---------------------------------------------------------------------------
# _acompletion_with_retry — retry logic
# ---------------------------------------------------------------------------


class TestRetryLogic:
    async def test_success_on_first_try(self) -> None:
        mock_acompletion = AsyncMock(return_value="ok")
        with patch("litellm.acompletion", mock_acompletion):
            result = await _acompletion_with_retry(model="test", messages=[])
            assert result == "ok"
            assert mock_acompletion.call_count == 1

    async def test_retries_on_connection_error(self) -> None:
        mock_acompletion = AsyncMock(side_effect=[ConnectionError("conn failed"), "ok"])
        with patch("litellm.acompletion", mock_acompletion):
            result = await _acompletion_with_retry(model="test", messages=[])
            assert result == "ok"
            assert mock_acompletion.call_count == 2

    async def test_gives_up_after_3_attempts(self) -> None:
        mock_acompletion = AsyncMock(
            side_effect=[
                ConnectionError("fail 1"),
                ConnectionError("fail 2"),
                ConnectionError("fail 3"),
            ]
        )
        with patch("litellm.acompletion", mock_acompletion):
            with pytest.raises(ConnectionError, match="fail 3"):
                await _acompletion_with_retry(model="test", messages=[])
            assert mock_acompletion.call_count == 3

    async def test_retries_litellm_transient_errors(self) -> None:
        mock_acompletion = AsyncMock(side_effect=[RateLimitError("slow down"), "ok"])
        with patch("litellm.acompletion", mock_acompletion):
            result = await _acompletion_with_retry(model="test", messages=[])
            assert result == "ok"
            assert mock_acompletion.call_count == 2

    async def test_attempts_configurable(self) -> None:
        mock_acompletion = AsyncMock(side_effect=ConnectionError("down"))
        with patch("litellm.acompletion", mock_acompletion):
            with pytest.raises(ConnectionError):
                await _acompletion_with_retry(1, model="test", messages=[])
            assert mock_acompletion.call_count == 1

    async def test_does_not_retry_on_value_error(self) -> None:
        """Non-transient errors should not be retried."""
        mock_acompletion = AsyncMock(side_effect=ValueError("bad input"))
        with patch("litellm.acompletion", mock_acompletion):
            with pytest.raises(ValueError, match="bad input"):
                await _acompletion_with_retry(model="test", messages=[])
            assert mock_acompletion.call_count == 1


# ---------------------------------------------------------------------------
# LiteLLMProvider.stream — request shape
# ---------------------------------------------------------------------------


class TestStream:
    async def test_system_prompt_prepended(self) -> None:
        async def _empty_stream():
            return
            yield  # pragma: no cover

        mock_acompletion = AsyncMock(return_value=_empty_stream())
        provider = create_provider("test/model", temperature=0.1)
        with patch("litellm.acompletion", mock_acompletion):
            chunks = [
                c
                async for c in provider.stream(
                    "be terse", [{"role": "user", "content": "hi"}]
                )
            ]
        assert chunks == []
        kwargs = mock_acompletion.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be terse"}
        assert kwargs["messages"][1]["content"] == "hi"
        assert kwargs["temperature"] == 0.1
        assert kwargs["stream"] is True
        assert "max_tokens" not in kwargs
        assert "timeout" not in kwargs

    def test_optional_settings_forwarded(self) -> None:
        provider = create_provider(
            "test/model", max_tokens=512, reasoning_effort="low", request_timeout=9.0
        )
        kwargs = provider.request_kwargs("sys", [])
        assert kwargs["max_tokens"] == 512
        assert kwargs["reasoning_effort"] == "low"
        assert kwargs["timeout"] == 9.0
        assert "temperature" not in kwargs


class TestIsTransient:
    def test_classification(self) -> None:
        assert _is_transient(ConnectionError())
        assert _is_transient(TimeoutError())
        assert _is_transient(RateLimitError())
        assert not _is_transient(ValueError())
        assert not _is_transient(PermissionError())


# ---------------------------------------------------------------------------
# _chunk_to_dict — normalization
# ---------------------------------------------------------------------------


class _FakeDelta:
    def __init__(
        self, content: str | None = None, reasoning_content: str | None = None
    ) -> None:
        self.content = content
        self.reasoning_content = reasoning_content


class _FakeChoice:
    def __init__(self, delta: _FakeDelta, finish_reason: str | None = None) -> None:
        self.delta = delta
        self.finish_reason = finish_reason


class _FakeChunk:
    def __init__(
        self,
        choices: list[_FakeChoice] | None = None,
        usage: object | None = None,
    ) -> None:
        self.choices = choices
        self.usage = usage


class TestChunkToDict:
    def test_text_content(self) -> None:
        chunk = _FakeChunk(choices=[_FakeChoice(delta=_FakeDelta(content="hello"))])
        d = _chunk_to_dict(chunk)
        assert d["delta"]["content"] == "hello"
        assert d["finish_reason"] is None

    def test_reasoning_content(self) -> None:
        chunk = _FakeChunk(
            choices=[_FakeChoice(delta=_FakeDelta(reasoning_content="hmm"))]
        )
        d = _chunk_to_dict(chunk)
        assert d["delta"]["reasoning_content"] == "hmm"
        assert "content" not in d["delta"]

    def test_finish_reason(self) -> None:
        chunk = _FakeChunk(
            choices=[_FakeChoice(delta=_FakeDelta(), finish_reason="stop")]
        )
        assert _chunk_to_dict(chunk)["finish_reason"] == "stop"

    def test_no_choices(self) -> None:
        d = _chunk_to_dict(_FakeChunk(choices=None))
        assert d["finish_reason"] is None
        assert d["delta"] == {}

    def test_usage_present(self) -> None:
        class FakeUsage:
            prompt_tokens = 100
            completion_tokens = 50
            total_tokens = 150

        chunk = _FakeChunk(choices=[_FakeChoice(delta=_FakeDelta())], usage=FakeUsage())
        d = _chunk_to_dict(chunk)
        assert d["usage"] == {
            "prompt_tokens": 100,
            "completion_tokens": 50,
            "total_tokens": 150,
        }
