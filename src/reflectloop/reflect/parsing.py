"""Parse generation-service replies into findings or artifact content."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from reflectloop.errors import MalformedResponse
from reflectloop.model.critique import Critique, Finding, Severity

_FENCE_RE = re.compile(r"```[\w+.-]*[ \t]*\n(.*?)```", re.DOTALL)


class FindingPayload(BaseModel):
    issue: str = Field(min_length=1)
    severity: Severity = Severity.WARNING
    suggestion: str = ""
    span: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("suggestion", mode="before")
    @classmethod
    def _none_suggestion(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("span", mode="before")
    @classmethod
    def _stringify_span(cls, v: Any) -> Any:
        # Models often reference a line number
        if v is None or isinstance(v, str):
            return v
        return str(v)


class CritiquePayload(BaseModel):
    findings: list[FindingPayload]


def parse_findings(raw: str) -> Critique:
    """Parse a critic reply into a Critique.

    Accepts a bare JSON object or one inside a fenced block, optionally
    surrounded by prose.

    Raises:
        MalformedResponse: no JSON object, or it does not match the schema.
    """
    candidate = _json_candidate(raw)
    if candidate is None:
        raise MalformedResponse("critic", "no JSON object in reply", raw)

    try:
        payload = CritiquePayload.model_validate_json(candidate)
    except ValidationError as e:
        raise MalformedResponse("critic", str(e), raw) from e

    return Critique(
        findings=tuple(
            Finding(
                issue=f.issue,
                severity=f.severity,
                suggestion=f.suggestion,
                span=f.span,
            )
            for f in payload.findings
        )
    )


def extract_content(raw: str, role: str = "reviser") -> str:
    """Extract artifact content from a reply.

    The first fenced block wins; otherwise the whole reply is taken.

    Raises:
        MalformedResponse: the reply holds no content.
    """
    match = _FENCE_RE.search(raw)
    content = match.group(1) if match else raw.strip()
    if not content.strip():
        raise MalformedResponse(role, "reply contains no artifact content", raw)
    return content


def _json_candidate(raw: str) -> str | None:
    for block in _FENCE_RE.findall(raw):
        if block.strip().startswith("{"):
            return block.strip()
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        return None
    return raw[start : end + 1]
