"""
Report builder.

A report is the PR comment for one invocation: a title plus a
collapsible block holding the terraform output, optional follow-up
commands, and a footer naming the directory and workspace.
"""

from __future__ import annotations

import shlex

from pydantic import BaseModel

from tfpr.commands import COMMAND_PREFIX, Command
from tfpr.formatter import DEFAULT_MAX_CHARS, format_output


class Report(BaseModel):
    title: str
    body: str
    success: bool

    @property
    def conclusion(self) -> str:
        return "success" if self.success else "failure"


def hint_lines(workspace: str, directory: str) -> list[str]:
    """Follow-up commands a reader can paste back as a comment."""
    return [
        f"`{COMMAND_PREFIX} {cmd.value} -w {shlex.quote(workspace)} -d {shlex.quote(directory)}`"
        for cmd in Command
    ]


def build_report(
    raw_output: str,
    include_hints: bool,
    workspace: str,
    directory: str,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    """Assemble the comment body around formatted terraform output."""
    parts = [
        "<details><summary>Show output</summary>",
        "<p>",
        "",
        "```diff",
        format_output(raw_output, max_chars),
        "```",
    ]
    if include_hints:
        parts += ["", "Comment one of the following to continue:", ""]
        parts += hint_lines(workspace, directory)
        parts.append("")
    parts += [
        "</p></details>",
        "<hr/>",
        f"<h6>Directory: {directory}</h6>",
        f"<h6>Workspace: {workspace}</h6>",
    ]
    return "\n".join(parts)


def render_comment(report: Report) -> str:
    return f"## {report.title}: \n\n{report.body}"
