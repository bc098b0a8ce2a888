"""Output capping — bound captured streams before they reach the critic."""

from __future__ import annotations

import re

MAX_BYTES = 50 * 1024  # 50KB

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")


def cap_output(text: str, max_bytes: int = MAX_BYTES) -> tuple[str, bool]:
    """Cap a captured stream at ``max_bytes`` of UTF-8.

    The tail is kept (tracebacks and errors tend to be at the end) and a
    notice line is prepended when anything was dropped.

    Returns:
        (text, truncated) tuple.
    """
    if not text:
        return text, False

    raw = text.encode("utf-8", errors="replace")
    if len(raw) <= max_bytes:
        return text, False

    # Cut at a safe UTF-8 boundary
    kept = raw[-max_bytes:].decode("utf-8", errors="ignore")
    skipped = len(raw) - max_bytes
    notice = f"[Output truncated: {skipped} bytes skipped. Total: {len(raw)} bytes]"
    return f"{notice}\n{kept}", True


def clean_output(data: bytes | None) -> str:
    """Decode subprocess output and strip terminal noise."""
    if not data:
        return ""
    text = data.decode("utf-8", errors="replace")
    return sanitize_binary_output(strip_ansi(text))


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def sanitize_binary_output(text: str) -> str:
    """Remove binary garbage from output.

    Keeps printable chars, tabs, newlines, and carriage returns.
    Strips everything else (control chars, undefined code points, format chars).
    """
    cleaned = []
    for ch in text:
        cp = ord(ch)
        if ch in ("\t", "\n", "\r"):
            cleaned.append(ch)
        elif cp >= 32 and cp not in range(0x7F, 0xA0):
            if cp not in range(0xFFF9, 0xFFFC):
                cleaned.append(ch)
    return "".join(cleaned)
