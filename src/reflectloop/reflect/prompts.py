"""Default role prompts and request rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reflectloop.reflect.service import GenerationRequest

AUTHOR_SYSTEM_PROMPT = """\
You write a single self-contained Python program that accomplishes the task
you are given. Reply with the complete program in one fenced ```python block
and nothing else.
"""

CRITIC_SYSTEM_PROMPT = """\
You are a careful reviewer. You are given a candidate artifact, optionally the
result of executing it, and the evaluation criteria. Identify concrete
problems, most important first.

Reply with a single JSON object and nothing else:

{"findings": [
  {"issue": "<what is wrong>",
   "severity": "info" | "warning" | "blocking",
   "suggestion": "<how to fix it>",
   "span": "<line, snippet or output excerpt it concerns, or null>"}
]}

Use "blocking" only for problems that make the artifact fail or incorrect.
If execution failed, quote the error message verbatim in the issue.
If there is nothing to improve, reply {"findings": []}.
"""

REVISER_SYSTEM_PROMPT = """\
You revise an artifact so that it addresses every finding of a review.
Fix every blocking finding; address the others where it does not risk
correctness. Do not change behaviour the findings do not mention.

Reply with the complete revised artifact in one fenced code block and
nothing else.
"""


def render_request(request: GenerationRequest) -> str:
    """Render a generation request as the user message for its role."""
    if request.role == "author":
        sections = [f"## Task\n\n{request.content}"]
        if request.criteria:
            sections.append(f"## Criteria\n\n{request.criteria}")
        return "\n\n".join(sections)

    sections = [f"## Artifact\n\n```\n{request.content}\n```"]

    if request.role == "critic":
        execution = request.execution
        if execution is None:
            sections.append(
                "## Execution\n\nNot executed. Review the content statically "
                "for correctness, style and clarity."
            )
        else:
            status = "succeeded" if execution.success else "FAILED"
            lines = [f"## Execution\n\nStatus: {status}"]
            if execution.exit_code is not None:
                lines.append(f"Exit code: {execution.exit_code}")
            if execution.timed_out:
                lines.append("The process was killed after exceeding its time limit.")
            if execution.truncated:
                lines.append("Output was truncated.")
            lines.append(f"\n### stdout\n\n```\n{execution.stdout}\n```")
            lines.append(f"\n### stderr\n\n```\n{execution.stderr}\n```")
            sections.append("\n".join(lines))
        if request.criteria:
            sections.append(f"## Criteria\n\n{request.criteria}")

    elif request.role == "reviser" and request.critique is not None:
        items = []
        for i, finding in enumerate(request.critique, 1):
            item = f"{i}. [{finding.severity.value}] {finding.issue}"
            if finding.span:
                item += f"\n   Concerns: {finding.span}"
            if finding.suggestion:
                item += f"\n   Suggested fix: {finding.suggestion}"
            items.append(item)
        sections.append("## Findings\n\n" + "\n".join(items))
        if request.criteria:
            sections.append(f"## Criteria\n\n{request.criteria}")

    return "\n\n".join(sections)
