"""Execution — run artifacts in isolated subprocesses."""

from reflectloop.execution.executor import (
    DEFAULT_COMMAND,
    TIMEOUT_MESSAGE,
    Executor,
)
from reflectloop.execution.truncation import cap_output

__all__ = [
    "DEFAULT_COMMAND",
    "TIMEOUT_MESSAGE",
    "Executor",
    "cap_output",
]
