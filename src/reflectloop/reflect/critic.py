"""Critic — turn an artifact and its execution feedback into findings."""

from __future__ import annotations

import logging

from reflectloop.model.artifact import Artifact, ExecutionResult
from reflectloop.model.critique import Critique, Finding, Severity
from reflectloop.reflect.parsing import parse_findings
from reflectloop.reflect.service import GenerationRequest, GenerationService

logger = logging.getLogger(__name__)


class Critic:
    """Reviews artifacts through an injected generation service.

    When the execution failed, the returned critique always leads with
    exactly one blocking finding that quotes the raw error text.
    """

    def __init__(self, service: GenerationService, criteria: str = "") -> None:
        self._service = service
        self._criteria = criteria

    async def critique(
        self, artifact: Artifact, execution: ExecutionResult | None = None
    ) -> Critique:
        """Critique ``artifact``.

        With ``execution=None`` the review is static only.

        Raises:
            MalformedResponse: the service reply could not be parsed.
        """
        raw = await self._service.complete(
            GenerationRequest(
                role="critic",
                content=artifact.content,
                execution=execution,
                criteria=self._criteria,
            )
        )
        critique = parse_findings(raw)

        if execution is not None and not execution.success:
            critique = _pin_failure(critique, execution)

        logger.info(
            "Critique of %s v%d: %d findings (%d blocking)",
            artifact.run_id,
            artifact.version,
            len(critique),
            len(critique.blocking),
        )
        return critique


def _pin_failure(critique: Critique, execution: ExecutionResult) -> Critique:
    """Make the execution error the single blocking finding, first in order.

    The critic's own blocking finding is reused when one exists: it keeps
    its suggestion and span, and the raw error text is appended to its issue
    unless already quoted. Any further blocking findings become warnings.
    """
    error_text = execution.error_text
    blocking = critique.blocking

    primary = next((f for f in blocking if error_text in f.issue), None)
    if primary is None and blocking:
        first = blocking[0]
        primary = Finding(
            issue=f"{first.issue}\n\nError output:\n{error_text}",
            severity=Severity.BLOCKING,
            suggestion=first.suggestion,
            span=first.span,
        )
        replaced = first
    elif primary is None:
        primary = Finding(
            issue=f"Execution failed:\n{error_text}",
            severity=Severity.BLOCKING,
        )
        replaced = None
    else:
        replaced = primary

    rest = [
        f.with_severity(Severity.WARNING) if f.is_blocking else f
        for f in critique.findings
        if f is not replaced
    ]
    return Critique(findings=(primary, *rest))
