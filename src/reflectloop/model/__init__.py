"""Data model — artifacts, execution results, critiques, run history."""

from reflectloop.model.artifact import Artifact, ExecutionResult
from reflectloop.model.critique import Critique, Finding, Severity
from reflectloop.model.history import (
    IterationRecord,
    RunHistory,
    StagnationCheck,
    identical_content,
)

__all__ = [
    "Artifact",
    "ExecutionResult",
    "Critique",
    "Finding",
    "Severity",
    "IterationRecord",
    "RunHistory",
    "StagnationCheck",
    "identical_content",
]
