"""Reflection loop — critic, reviser, generation service and controller."""

from reflectloop.reflect.controller import (
    FailureReason,
    LoopController,
    LoopState,
    RunOutcome,
    RunResult,
    Validator,
    stdout_contains,
    succeeded,
)
from reflectloop.reflect.critic import Critic
from reflectloop.reflect.reviser import Drafter, Reviser
from reflectloop.reflect.role import Role, RoleConfig, RoleRegistry
from reflectloop.reflect.service import (
    GenerationRequest,
    GenerationService,
    LLMGenerationService,
)

__all__ = [
    "FailureReason",
    "LoopController",
    "LoopState",
    "RunOutcome",
    "RunResult",
    "Validator",
    "stdout_contains",
    "succeeded",
    "Critic",
    "Drafter",
    "Reviser",
    "Role",
    "RoleConfig",
    "RoleRegistry",
    "GenerationRequest",
    "GenerationService",
    "LLMGenerationService",
]
