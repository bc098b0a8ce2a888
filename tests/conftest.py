"""Shared test doubles for the generation service."""

from __future__ import annotations

from typing import Callable, Union

import pytest

from reflectloop.reflect.service import GenerationRequest

Reply = Union[str, Exception, Callable[[GenerationRequest], str]]


class ScriptedService:
    """Generation service that replays canned replies in order.

    A reply may be a string, an exception to raise, or a callable taking
    the request. The last reply repeats once the script runs out.
    """

    def __init__(self, *replies: Reply) -> None:
        assert replies, "ScriptedService needs at least one reply"
        self._replies = list(replies)
        self.requests: list[GenerationRequest] = []

    async def complete(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        index = min(len(self.requests), len(self._replies)) - 1
        reply = self._replies[index]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def scripted() -> type[ScriptedService]:
    return ScriptedService
