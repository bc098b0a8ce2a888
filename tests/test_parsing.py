"""Tests for reflectloop.reflect.parsing (critic and reviser replies)."""

from __future__ import annotations

import pytest

from reflectloop.errors import MalformedResponse
from reflectloop.model.critique import Severity
from reflectloop.reflect.parsing import extract_content, parse_findings


# ---------------------------------------------------------------------------
# parse_findings
# ---------------------------------------------------------------------------


class TestParseFindings:
    def test_bare_json(self) -> None:
        raw = (
            '{"findings": [{"issue": "missing colon", "severity": "blocking", '
            '"suggestion": "add a colon", "span": "line 1"}]}'
        )
        critique = parse_findings(raw)
        assert len(critique) == 1
        f = critique.findings[0]
        assert f.issue == "missing colon"
        assert f.severity is Severity.BLOCKING
        assert f.suggestion == "add a colon"
        assert f.span == "line 1"

    def test_fenced_json_with_prose(self) -> None:
        raw = (
            "Here is my review:\n\n```json\n"
            '{"findings": [{"issue": "a", "severity": "info"}, '
            '{"issue": "b", "severity": "warning"}]}\n'
            "```\nHope that helps."
        )
        critique = parse_findings(raw)
        assert [f.issue for f in critique] == ["a", "b"]
        assert [f.severity for f in critique] == [Severity.INFO, Severity.WARNING]

    def test_empty_findings(self) -> None:
        assert parse_findings('{"findings": []}').is_empty

    def test_severity_case_insensitive(self) -> None:
        critique = parse_findings('{"findings": [{"issue": "x", "severity": " Blocking "}]}')
        assert critique.findings[0].severity is Severity.BLOCKING

    def test_defaults(self) -> None:
        critique = parse_findings('{"findings": [{"issue": "x", "suggestion": null}]}')
        f = critique.findings[0]
        assert f.severity is Severity.WARNING
        assert f.suggestion == ""
        assert f.span is None

    def test_numeric_span(self) -> None:
        critique = parse_findings('{"findings": [{"issue": "x", "span": 12}]}')
        assert critique.findings[0].span == "12"

    def test_no_json(self) -> None:
        with pytest.raises(MalformedResponse, match="no JSON"):
            parse_findings("Looks fine to me!")

    def test_invalid_json(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_findings('{"findings": [{"issue": "x",}')

    def test_wrong_shape(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_findings('{"issues": ["x"]}')

    def test_unknown_severity(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_findings('{"findings": [{"issue": "x", "severity": "catastrophic"}]}')

    def test_empty_issue(self) -> None:
        with pytest.raises(MalformedResponse):
            parse_findings('{"findings": [{"issue": "", "severity": "info"}]}')

    def test_malformed_keeps_raw(self) -> None:
        with pytest.raises(MalformedResponse) as exc_info:
            parse_findings("nope")
        assert exc_info.value.raw == "nope"
        assert exc_info.value.role == "critic"


# ---------------------------------------------------------------------------
# extract_content
# ---------------------------------------------------------------------------


class TestExtractContent:
    def test_fenced_block(self) -> None:
        raw = "Fixed:\n```python\nfor i in range(3):\n    print(i)\n```\n"
        assert extract_content(raw) == "for i in range(3):\n    print(i)\n"

    def test_first_block_wins(self) -> None:
        raw = "```\nfirst\n```\n```\nsecond\n```"
        assert extract_content(raw) == "first\n"

    def test_plain_reply(self) -> None:
        assert extract_content("  print(1)  \n") == "print(1)"

    def test_empty_reply(self) -> None:
        with pytest.raises(MalformedResponse, match="no artifact content"):
            extract_content("   ")

    def test_empty_fenced_block(self) -> None:
        with pytest.raises(MalformedResponse) as exc_info:
            extract_content("```python\n```", role="author")
        assert exc_info.value.role == "author"
