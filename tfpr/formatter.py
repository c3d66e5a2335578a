"""
Output formatter.

Turns captured terraform text into something that renders well inside a
```diff fence in a PR comment. Pure functions only.
"""

from __future__ import annotations

import re

DEFAULT_MAX_CHARS = 60_000

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
# "  + resource", "      - attr", "  ~ update in-place"
_MARKER_RE = re.compile(r"^(\s+)([-+~])(?=\s|$)")
_FENCE = "```"
_SAFE_FENCE = "`\u200b`\u200b`"

_MARKER_MAP = {"+": "+", "-": "-", "~": "!"}


def _move_marker(line: str) -> str:
    match = _MARKER_RE.match(line)
    if not match:
        return line
    indent, marker = match.group(1), match.group(2)
    return _MARKER_MAP[marker] + indent + line[match.end():]


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    notice = f"... output truncated, {len(text)} characters total"
    head = text[: max(0, max_chars - len(notice) - 1)]
    # Cut on a line boundary when one is available
    if "\n" in head:
        head = head[: head.rindex("\n")]
    head = head.rstrip()
    out = f"{head}\n{notice}" if head else notice
    # Limits shorter than the notice still bound the result
    return out[:max_chars].rstrip()


def format_output(raw: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Format raw terraform output for a diff-highlighted comment block."""
    text = _ANSI_RE.sub("", raw or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [_move_marker(line.rstrip()).rstrip() for line in text.split("\n")]
    text = "\n".join(lines).strip("\n")
    while _FENCE in text:
        text = text.replace(_FENCE, _SAFE_FENCE)
    return _truncate(text, max_chars)
