"""Shared fakes: a terraform that never leaves the process, and a recording publisher."""

from __future__ import annotations

from pathlib import Path

import pytest

from tfpr.config_loader import BridgeConfig, TerraformConfig
from tfpr.event_bus import EventBus
from tfpr.executor import Executor
from tfpr.publisher import Publisher
from tfpr.runner import ProcessResult, TerraformRunner


class FakeTerraform(TerraformRunner):
    """
    Simulates terraform's workspace bookkeeping and answers every other
    subcommand with canned output. `overrides` maps "init", "plan",
    "apply", "workspace select", ... to ProcessResult fields.
    """

    def __init__(self, overrides: dict | None = None, workspaces: set[str] | None = None):
        super().__init__(binary="terraform", working_dir=Path("."))
        self.overrides = overrides or {}
        self.workspaces = set(workspaces or {"default"})
        self.selected = "default"
        self.calls: list[list[str]] = []

    def run(self, args, directory="", timeout=None):
        argv = self.build_argv(args, directory)
        self.calls.append(argv)
        key = " ".join(args[:2]) if args[0] == "workspace" else args[0]
        if key in self.overrides:
            return ProcessResult(argv=argv, **self.overrides[key])

        if args[0] == "workspace":
            verb = args[1]
            if verb == "select":
                if args[2] not in self.workspaces:
                    return ProcessResult(argv=argv, returncode=1, stderr=f'Workspace "{args[2]}" doesn\'t exist.\n')
                self.selected = args[2]
                return ProcessResult(argv=argv, returncode=0, stdout=f'Switched to workspace "{args[2]}".\n')
            if verb == "new":
                self.workspaces.add(args[2])
                self.selected = args[2]
                return ProcessResult(argv=argv, returncode=0, stdout=f'Created and switched to workspace "{args[2]}"!\n')
            if verb == "show":
                return ProcessResult(argv=argv, returncode=0, stdout=self.selected + "\n")

        return ProcessResult(argv=argv, returncode=0, stdout=f"{' '.join(args)}: ok\n")

    @property
    def subcommands(self) -> list[list[str]]:
        """Calls without the binary and -chdir prefix."""
        return [[a for a in argv[1:] if not a.startswith("-chdir=")] for argv in self.calls]

    def operation_calls(self) -> list[list[str]]:
        return [c for c in self.subcommands if c[0] in ("plan", "apply")]


class RecordingPublisher(Publisher):

    def __init__(self):
        self.events: list[tuple] = []

    def open_status(self, command, ctx):
        self.events.append(("open", command, ctx))
        return 42

    def close_status(self, status_id, command, report):
        self.events.append(("close", status_id, command, report))

    def publish(self, report):
        self.events.append(("publish", report))

    def kinds(self) -> list[str]:
        return [e[0] for e in self.events]


@pytest.fixture
def fake_tf() -> FakeTerraform:
    return FakeTerraform()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def make_executor(event_bus):
    def _make(runner: TerraformRunner, **terraform) -> Executor:
        config = BridgeConfig(terraform=TerraformConfig(**terraform))
        return Executor(config, runner=runner, event_bus=event_bus)
    return _make
