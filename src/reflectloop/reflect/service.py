"""Generation service — the external collaborator behind Critic and Reviser.

Critic and Reviser each receive their own ``GenerationService`` handle, so
reflection can be backed by a different model than generation without any
change to the loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from reflectloop.errors import MalformedResponse
from reflectloop.llm.message import Message
from reflectloop.llm.provider import ChatProvider
from reflectloop.llm.streaming import generate
from reflectloop.model.artifact import ExecutionResult
from reflectloop.model.critique import Critique
from reflectloop.reflect.prompts import render_request
from reflectloop.reflect.role import RoleName, RoleRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """One request to the generation service.

    ``content`` is the artifact content (or the task description for the
    author role).
    """

    role: RoleName
    content: str
    execution: ExecutionResult | None = None
    criteria: str = ""
    critique: Critique | None = None


@runtime_checkable
class GenerationService(Protocol):
    """Anything that turns a request into structured text."""

    async def complete(self, request: GenerationRequest) -> str: ...


class LLMGenerationService:
    """Generation service backed by a chat model."""

    def __init__(
        self,
        provider: ChatProvider,
        roles: RoleRegistry | None = None,
        on_text: Callable[[str], None] | None = None,
    ) -> None:
        self._provider = provider
        self._roles = roles or RoleRegistry()
        self._on_text = on_text

    async def complete(self, request: GenerationRequest) -> str:
        """Render ``request`` for its role and return the model's reply text.

        Raises:
            MalformedResponse: the model stopped at its output token limit.
        """
        role = self._roles.require(request.role)
        prompt = render_request(request)
        logger.debug(
            "Requesting %s completion from %s", role.name, self._provider.config.model
        )
        result = await generate(
            self._provider,
            role.system_prompt,
            [Message.user(prompt)],
            on_text=self._on_text,
        )
        if result.truncated:
            # Cut off mid-artifact or mid-JSON
            raise MalformedResponse(
                request.role, "reply truncated at max_tokens", result.text
            )
        return result.text
