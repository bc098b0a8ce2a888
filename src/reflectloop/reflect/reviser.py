"""Reviser and Drafter — produce artifact versions via the generation service."""

from __future__ import annotations

import logging
from typing import Literal

from reflectloop.model.artifact import Artifact
from reflectloop.model.critique import Critique
from reflectloop.reflect.parsing import extract_content
from reflectloop.reflect.service import GenerationRequest, GenerationService

logger = logging.getLogger(__name__)


class Reviser:
    """Rewrites an artifact so it addresses a critique."""

    def __init__(self, service: GenerationService, criteria: str = "") -> None:
        self._service = service
        self._criteria = criteria

    async def revise(self, artifact: Artifact, critique: Critique) -> Artifact:
        """Return the next version of ``artifact``.

        An empty critique is a no-op: the input artifact is returned as-is,
        version unchanged.

        Raises:
            MalformedResponse: the service reply held no content.
        """
        if critique.is_empty:
            logger.debug(
                "Empty critique for %s v%d, nothing to revise",
                artifact.run_id,
                artifact.version,
            )
            return artifact

        raw = await self._service.complete(
            GenerationRequest(
                role="reviser",
                content=artifact.content,
                criteria=self._criteria,
                critique=critique,
            )
        )
        revised = artifact.revise(extract_content(raw, "reviser"))
        logger.info("Revised %s to v%d", artifact.run_id, revised.version)
        return revised


class Drafter:
    """Produces the seed artifact (version 0) from a task description."""

    def __init__(self, service: GenerationService, criteria: str = "") -> None:
        self._service = service
        self._criteria = criteria

    async def draft(self, task: str, kind: Literal["code", "text"] = "code") -> Artifact:
        raw = await self._service.complete(
            GenerationRequest(role="author", content=task, criteria=self._criteria)
        )
        return Artifact.seed(extract_content(raw, "author"), kind=kind)
