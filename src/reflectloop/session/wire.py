"""Wire protocol — decouples the loop from whatever reports on it.

The controller sends events onto the wire; the CLI (or any other consumer)
subscribes and renders them. Several concurrent runs may share one wire;
every event carries its ``run_id``.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    RUN_BEGIN = "run_begin"
    RUN_END = "run_end"
    STATE = "state"
    EXECUTION = "execution"
    CRITIQUE = "critique"
    REVISION = "revision"
    RETRY = "retry"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: controller -> subscribers.

    Single-producer, multi-consumer broadcast.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def send_run_begin(self, run_id: str, max_iterations: int) -> None:
        self.send(
            WireEvent(
                type=EventType.RUN_BEGIN,
                data={"run_id": run_id, "max_iterations": max_iterations},
            )
        )

    def send_run_end(
        self, run_id: str, outcome: str, version: int, reason: str | None = None
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.RUN_END,
                data={
                    "run_id": run_id,
                    "outcome": outcome,
                    "version": version,
                    "reason": reason,
                },
            )
        )

    def send_error(self, run_id: str, error: str) -> None:
        self.send(
            WireEvent(type=EventType.ERROR, data={"run_id": run_id, "error": error})
        )

    def send_state(self, run_id: str, state: str, iteration: int) -> None:
        self.send(
            WireEvent(
                type=EventType.STATE,
                data={"run_id": run_id, "state": state, "iteration": iteration},
            )
        )

    def send_execution(
        self,
        run_id: str,
        version: int,
        success: bool,
        duration: float,
        stderr: str = "",
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.EXECUTION,
                data={
                    "run_id": run_id,
                    "version": version,
                    "success": success,
                    "duration": duration,
                    "stderr": stderr[:500],
                },
            )
        )

    def send_critique(
        self, run_id: str, version: int, findings: list[dict[str, Any]]
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.CRITIQUE,
                data={"run_id": run_id, "version": version, "findings": findings},
            )
        )

    def send_revision(self, run_id: str, version: int) -> None:
        self.send(
            WireEvent(
                type=EventType.REVISION,
                data={"run_id": run_id, "version": version},
            )
        )

    def send_retry(self, run_id: str, stage: str, attempt: int, error: str) -> None:
        self.send(
            WireEvent(
                type=EventType.RETRY,
                data={
                    "run_id": run_id,
                    "stage": stage,
                    "attempt": attempt,
                    "error": error,
                },
            )
        )

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
