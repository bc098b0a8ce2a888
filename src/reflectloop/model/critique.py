"""Finding and Critique data types."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Iterator


class Severity(enum.Enum):
    INFO = "info"
    WARNING = "warning"
    BLOCKING = "blocking"


@dataclass(frozen=True)
class Finding:
    """One critique item: what is wrong, how bad, and how to fix it."""

    issue: str
    severity: Severity = Severity.WARNING
    suggestion: str = ""
    span: str | None = None  # output span or line reference the issue concerns

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.BLOCKING

    def with_severity(self, severity: Severity) -> Finding:
        return replace(self, severity=severity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue,
            "severity": self.severity.value,
            "suggestion": self.suggestion,
            "span": self.span,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            issue=data.get("issue", ""),
            severity=Severity(data.get("severity", "warning")),
            suggestion=data.get("suggestion", ""),
            span=data.get("span"),
        )


@dataclass(frozen=True)
class Critique:
    """Ordered findings for one artifact. Order is the critic's priority."""

    findings: tuple[Finding, ...] = ()

    @classmethod
    def of(cls, *findings: Finding) -> Critique:
        return cls(findings=tuple(findings))

    @property
    def blocking(self) -> list[Finding]:
        return [f for f in self.findings if f.is_blocking]

    @property
    def is_empty(self) -> bool:
        return not self.findings

    def __len__(self) -> int:
        return len(self.findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)

    def to_list(self) -> list[dict[str, Any]]:
        return [f.to_dict() for f in self.findings]

    @classmethod
    def from_list(cls, items: list[dict[str, Any]]) -> Critique:
        return cls(findings=tuple(Finding.from_dict(d) for d in items))
