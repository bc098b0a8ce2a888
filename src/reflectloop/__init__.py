"""reflectloop — a bounded generate → execute → critique → revise harness."""

from reflectloop.errors import (
    ExecutionEnvironmentError,
    MalformedResponse,
    ReflectError,
    ServiceUnavailable,
)
from reflectloop.execution import Executor
from reflectloop.model import (
    Artifact,
    Critique,
    ExecutionResult,
    Finding,
    RunHistory,
    Severity,
)
from reflectloop.reflect import (
    Critic,
    Drafter,
    FailureReason,
    GenerationRequest,
    GenerationService,
    LoopController,
    LoopState,
    Reviser,
    RunOutcome,
    RunResult,
)

__version__ = "0.1.0"

__all__ = [
    "ExecutionEnvironmentError",
    "MalformedResponse",
    "ReflectError",
    "ServiceUnavailable",
    "Executor",
    "Artifact",
    "Critique",
    "ExecutionResult",
    "Finding",
    "RunHistory",
    "Severity",
    "Critic",
    "Drafter",
    "FailureReason",
    "GenerationRequest",
    "GenerationService",
    "LoopController",
    "LoopState",
    "Reviser",
    "RunOutcome",
    "RunResult",
]
