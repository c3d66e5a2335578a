"""
Comment command parsing.

A triggering comment looks like:

    terraform plan -w staging -d infra/network

Only the first non-empty line is considered. Everything after it is
free text for humans.
"""

from __future__ import annotations

import shlex
from enum import Enum

from pydantic import BaseModel


COMMAND_PREFIX = "terraform"


class Command(str, Enum):
    PLAN = "plan"
    APPLY = "apply"
    PLAN_DESTROY = "plan-destroy"
    APPLY_DESTROY = "apply-destroy"

    @property
    def is_plan(self) -> bool:
        """Plan-family commands are exploratory and get follow-up hints."""
        return self in (Command.PLAN, Command.PLAN_DESTROY)


class ParseError(ValueError):
    """Raised when a comment body carries no usable command."""
    pass


class ParsedCommand(BaseModel):
    command: Command
    directory: str = ""
    workspace: str = ""


_DIR_FLAGS = ("-d", "--dir")
_WORKSPACE_FLAGS = ("-w", "--workspace")


def _first_line(body: str) -> str:
    for line in body.splitlines():
        if line.strip():
            return line.strip()
    return ""


def parse_command(body: str) -> ParsedCommand:
    """Extract (command, directory, workspace) from a comment body."""
    line = _first_line(body or "")
    try:
        tokens = shlex.split(line)
    except ValueError as e:
        raise ParseError(f"Unparseable command line: {line!r} ({e})")

    if len(tokens) < 2 or tokens[0] != COMMAND_PREFIX:
        raise ParseError(f"No '{COMMAND_PREFIX}' command in: {line!r}")

    try:
        command = Command(tokens[1])
    except ValueError:
        raise ParseError(f"Unknown command: {tokens[1]!r}")

    directory = ""
    workspace = ""
    rest = tokens[2:]
    i = 0
    while i < len(rest):
        flag = rest[i]
        if flag in _DIR_FLAGS or flag in _WORKSPACE_FLAGS:
            if i + 1 >= len(rest):
                raise ParseError(f"Flag {flag} needs a value")
            if flag in _DIR_FLAGS:
                directory = rest[i + 1]
            else:
                workspace = rest[i + 1]
            i += 2
        else:
            raise ParseError(f"Unknown argument: {flag!r}")

    return ParsedCommand(command=command, directory=directory, workspace=workspace)


def is_command(body: str) -> bool:
    try:
        parse_command(body)
    except ParseError:
        return False
    return True
