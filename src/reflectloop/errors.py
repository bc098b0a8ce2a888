"""Exception hierarchy for reflectloop.

Executor, Critic and Reviser raise these; the loop controller is the only
place that decides between retrying a stage and ending the run.
"""

from __future__ import annotations


class ReflectError(Exception):
    """Base class for all reflectloop errors."""


class ExecutionEnvironmentError(ReflectError):
    """The execution substrate itself is unavailable (e.g. missing interpreter).

    Distinct from an artifact that runs and fails: that is reported as an
    ``ExecutionResult`` with ``success=False``, not as an exception.
    """


class MalformedResponse(ReflectError):
    """The generation service produced output that could not be parsed."""

    def __init__(self, role: str, reason: str, raw: str = "") -> None:
        self.role = role
        self.reason = reason
        self.raw = raw
        super().__init__(f"Malformed {role} response: {reason}")


class ServiceUnavailable(ReflectError):
    """A critic/reviser stage could not produce a usable response.

    Raised by the controller once a stage has exhausted its retries on
    malformed output, or when the service call itself failed.
    """

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage} unavailable: {reason}")
