"""HistoryLog — JSONL-backed, append-only audit trail of a run.

One record per iteration, followed by a single outcome record when the run
ends:

    {"run_id": ..., "version": 0, "kind": "code", "content": ...,
     "execution": {...}, "critique": [...] | null}
    {"_type": "outcome", "run_id": ..., "outcome": "done", "reason": null, ...}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles

from reflectloop.model.history import IterationRecord

logger = logging.getLogger(__name__)


@dataclass
class HistoryLog:
    """Append-only JSONL file for one run."""

    path: Path
    records: list[IterationRecord] = field(default_factory=list)
    outcome: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def append(self, record: IterationRecord) -> None:
        """Append an iteration record and persist."""
        self.records.append(record)
        await self._append_jsonl(record.to_dict())

    async def append_outcome(
        self,
        run_id: str,
        outcome: str,
        version: int,
        reason: str | None = None,
        detail: str = "",
    ) -> None:
        """Persist the terminal outcome of the run."""
        self.outcome = {
            "_type": "outcome",
            "run_id": run_id,
            "outcome": outcome,
            "version": version,
            "reason": reason,
            "detail": detail,
        }
        await self._append_jsonl(self.outcome)

    @classmethod
    async def restore(cls, path: Path) -> HistoryLog:
        """Read a history log back from disk."""
        path = Path(path)
        log = cls(path=path)
        if not path.exists():
            return log

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed JSONL line in %s", path)
                    continue

                if data.get("_type") == "outcome":
                    log.outcome = data
                elif "version" in data:
                    log.records.append(IterationRecord.from_dict(data))

        return log

    async def _append_jsonl(self, data: dict[str, Any]) -> None:
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(json.dumps(data, ensure_ascii=False) + "\n")
