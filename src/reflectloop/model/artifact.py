"""Artifact and ExecutionResult data types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Literal


def _gen_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Artifact:
    """One versioned candidate output (code or prose) produced during a run.

    Artifacts are never mutated. A revision is a new Artifact with the same
    ``run_id`` and ``version + 1``.
    """

    content: str
    version: int = 0
    run_id: str = field(default_factory=_gen_run_id)
    kind: Literal["code", "text"] = "code"

    @classmethod
    def seed(cls, content: str, kind: Literal["code", "text"] = "code") -> Artifact:
        """Create version 0 of a new run."""
        return cls(content=content, version=0, kind=kind)

    def revise(self, content: str) -> Artifact:
        """Create the next version of this artifact."""
        return replace(self, content=content, version=self.version + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "version": self.version,
            "kind": self.kind,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        return cls(
            content=data.get("content", ""),
            version=data.get("version", 0),
            run_id=data.get("run_id", ""),
            kind=data.get("kind", "code"),
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running one Artifact."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0  # wall-clock seconds
    truncated: bool = False  # either stream exceeded the byte cap
    exit_code: int | None = None  # None when the process was killed
    timed_out: bool = False

    @property
    def error_text(self) -> str:
        """Raw error text to report back to the critic.

        Falls back to the exit status when the process wrote nothing to stderr.
        """
        if self.stderr:
            return self.stderr
        if self.exit_code is not None:
            return f"process exited with status {self.exit_code}"
        return "process terminated without output"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration,
            "truncated": self.truncated,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionResult:
        return cls(
            success=data.get("success", False),
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
            duration=data.get("duration", 0.0),
            truncated=data.get("truncated", False),
            exit_code=data.get("exit_code"),
            timed_out=data.get("timed_out", False),
        )
