"""Tests for reflectloop.reflect.service and request rendering."""

from __future__ import annotations

from typing import Any, AsyncIterator

import pytest

from reflectloop.errors import MalformedResponse
from reflectloop.llm.provider import ProviderConfig
from reflectloop.model.artifact import ExecutionResult
from reflectloop.model.critique import Critique, Finding, Severity
from reflectloop.reflect.prompts import CRITIC_SYSTEM_PROMPT, render_request
from reflectloop.reflect.role import Role, RoleConfig, RoleRegistry
from reflectloop.reflect.service import (
    GenerationRequest,
    GenerationService,
    LLMGenerationService,
)


class RecordingProvider:
    def __init__(self, reply: str, finish_reason: str = "stop") -> None:
        self.config = ProviderConfig(model="fake/model")
        self._reply = reply
        self._finish_reason = finish_reason
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []

    async def stream(
        self, system: str, messages: list[dict[str, Any]]
    ) -> AsyncIterator[dict[str, Any]]:
        self.calls.append((system, messages))
        yield {
            "delta": {"content": self._reply},
            "finish_reason": self._finish_reason,
        }


# ---------------------------------------------------------------------------
# render_request
# ---------------------------------------------------------------------------


class TestRenderRequest:
    def test_author(self) -> None:
        text = render_request(
            GenerationRequest(role="author", content="sum a list", criteria="be fast")
        )
        assert "## Task\n\nsum a list" in text
        assert "be fast" in text

    def test_critic_static(self) -> None:
        text = render_request(GenerationRequest(role="critic", content="x = 1"))
        assert "x = 1" in text
        assert "Not executed" in text

    def test_critic_with_failed_execution(self) -> None:
        execution = ExecutionResult(
            success=False,
            stdout="partial",
            stderr="NameError: name 'y' is not defined",
            exit_code=1,
        )
        text = render_request(
            GenerationRequest(
                role="critic", content="print(y)", execution=execution, criteria="c"
            )
        )
        assert "Status: FAILED" in text
        assert "Exit code: 1" in text
        assert "NameError: name 'y' is not defined" in text
        assert "partial" in text
        assert "## Criteria\n\nc" in text

    def test_critic_timeout_noted(self) -> None:
        execution = ExecutionResult(
            success=False, stderr="execution timed out", timed_out=True
        )
        text = render_request(
            GenerationRequest(role="critic", content="while True: pass", execution=execution)
        )
        assert "time limit" in text

    def test_reviser_lists_findings(self) -> None:
        critique = Critique.of(
            Finding("crashes", Severity.BLOCKING, suggestion="guard it", span="line 3"),
            Finding("naming", Severity.INFO),
        )
        text = render_request(
            GenerationRequest(
                role="reviser", content="code", critique=critique, criteria="Task: t"
            )
        )
        assert "1. [blocking] crashes" in text
        assert "Concerns: line 3" in text
        assert "Suggested fix: guard it" in text
        assert "2. [info] naming" in text
        assert "Task: t" in text


# ---------------------------------------------------------------------------
# LLMGenerationService
# ---------------------------------------------------------------------------


class TestLLMGenerationService:
    def test_satisfies_protocol(self) -> None:
        service = LLMGenerationService(RecordingProvider("x"))
        assert isinstance(service, GenerationService)

    async def test_uses_role_prompt(self) -> None:
        provider = RecordingProvider('{"findings": []}')
        service = LLMGenerationService(provider)

        reply = await service.complete(GenerationRequest(role="critic", content="x"))

        assert reply == '{"findings": []}'
        system, messages = provider.calls[0]
        assert system == CRITIC_SYSTEM_PROMPT
        assert messages[0]["role"] == "user"
        assert "x" in messages[0]["content"]

    async def test_role_override(self) -> None:
        provider = RecordingProvider("ok")
        roles = RoleRegistry()
        roles.register(Role(RoleConfig(name="reviser"), "custom reviser prompt"))
        service = LLMGenerationService(provider, roles)

        await service.complete(GenerationRequest(role="reviser", content="x"))

        assert provider.calls[0][0] == "custom reviser prompt"

    async def test_streams_to_callback(self) -> None:
        seen: list[str] = []
        service = LLMGenerationService(RecordingProvider("chunk"), on_text=seen.append)
        await service.complete(GenerationRequest(role="author", content="t"))
        assert seen == ["chunk"]

    async def test_truncated_reply_is_malformed(self) -> None:
        provider = RecordingProvider('{"findings": [{"text": "cut', "length")
        service = LLMGenerationService(provider)

        with pytest.raises(MalformedResponse) as excinfo:
            await service.complete(GenerationRequest(role="critic", content="x"))

        assert excinfo.value.role == "critic"
        assert "max_tokens" in excinfo.value.reason
        assert excinfo.value.raw.startswith('{"findings"')
