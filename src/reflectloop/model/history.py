"""RunHistory — append-only audit trail of one controller run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from reflectloop.model.artifact import Artifact, ExecutionResult
from reflectloop.model.critique import Critique

# (previous, candidate) -> True when the candidate made no material change
StagnationCheck = Callable[[Artifact, Artifact], bool]


def identical_content(previous: Artifact, candidate: Artifact) -> bool:
    """Byte-exact stagnation check."""
    return previous.content.encode("utf-8") == candidate.content.encode("utf-8")


@dataclass(frozen=True)
class IterationRecord:
    """One executed artifact with its execution outcome and critique.

    ``critique`` is None for the final record of a run, where the loop
    stopped before asking the critic.
    """

    artifact: Artifact
    execution: ExecutionResult
    critique: Critique | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.artifact.to_dict(),
            "execution": self.execution.to_dict(),
            "critique": self.critique.to_list() if self.critique is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IterationRecord:
        critique = data.get("critique")
        return cls(
            artifact=Artifact.from_dict(data),
            execution=ExecutionResult.from_dict(data.get("execution", {})),
            critique=Critique.from_list(critique) if critique is not None else None,
        )


@dataclass
class RunHistory:
    """Ordered records for one run. Only ever appended to."""

    run_id: str
    _records: list[IterationRecord] = field(default_factory=list, init=False)

    def append(self, record: IterationRecord) -> None:
        """Append a record, enforcing run membership and +1 versioning."""
        artifact = record.artifact
        if artifact.run_id != self.run_id:
            raise ValueError(
                f"Artifact belongs to run {artifact.run_id}, not {self.run_id}"
            )
        if self._records:
            expected = self._records[-1].artifact.version + 1
            if artifact.version != expected:
                raise ValueError(
                    f"Expected artifact version {expected}, got {artifact.version}"
                )
        self._records.append(record)

    @property
    def records(self) -> tuple[IterationRecord, ...]:
        return tuple(self._records)

    @property
    def latest(self) -> IterationRecord | None:
        return self._records[-1] if self._records else None

    def is_stagnant(
        self, candidate: Artifact, check: StagnationCheck = identical_content
    ) -> bool:
        """Would appending ``candidate`` repeat the latest artifact?"""
        if not self._records:
            return False
        return check(self._records[-1].artifact, candidate)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[IterationRecord]:
        return iter(self._records)
