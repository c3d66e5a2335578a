"""
tfpr Executor — the terraform state machine.

    Idle → Initializing → SelectingContext → Running → Done

Each stage is one blocking terraform call. A failed init (or, in strict
mode, a failed workspace selection) ends the run early. Whatever happens,
exactly one Report comes out the other end.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict

from tfpr.commands import Command
from tfpr.config_loader import BridgeConfig, load_config
from tfpr.event_bus import EventBus, bus
from tfpr.report import Report, build_report
from tfpr.runner import ProcessResult, TerraformRunner, ToolInvocationError
from tfpr.state import ExecutorState, RunState, StageRecord
from tfpr.workspace import WorkspaceError, WorkspaceManager


CURRENT_DIR = "."


class ExecutionContext(BaseModel):
    """Where and against which workspace one invocation runs."""
    model_config = ConfigDict(frozen=True)

    directory: str = CURRENT_DIR
    workspace: str = "dev"

    def with_workspace(self, workspace: str) -> "ExecutionContext":
        return self.model_copy(update={"workspace": workspace})


def resolve_directory(caller_dir: str, default_dir: str) -> str:
    """Configured default dir beats the caller's dir, which beats cwd."""
    if default_dir:
        return default_dir
    if caller_dir:
        return caller_dir
    return CURRENT_DIR


_OPERATION_ARGS: dict[Command, list[str]] = {
    Command.PLAN: ["plan", "-no-color"],
    Command.APPLY: ["apply", "-no-color", "-auto-approve"],
    Command.PLAN_DESTROY: ["plan", "-destroy", "-no-color"],
    Command.APPLY_DESTROY: ["apply", "-destroy", "-no-color", "-auto-approve"],
}


class Executor:
    """
    Drives init → workspace → operation for a single command.

    Owns no state between invocations; every call to `execute` builds a
    fresh RunState.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        runner: TerraformRunner | None = None,
        event_bus: EventBus | None = None,
        working_dir: Path | None = None,
    ):
        self.config = config or load_config(working_dir)
        self.runner = runner or TerraformRunner(self.config.terraform.binary, working_dir)
        self.bus = event_bus or bus
        self.timeouts = self.config.terraform.timeouts
        self.workspaces = WorkspaceManager(self.runner, timeout=self.timeouts.workspace)

        self._runners: dict[Command, Callable[[RunState, ExecutionContext], ProcessResult]] = {
            Command.PLAN: self.plan,
            Command.APPLY: self.apply,
            Command.PLAN_DESTROY: self.plan_destroy,
            Command.APPLY_DESTROY: self.apply_destroy,
        }
        self.last_run: RunState | None = None

    # -----------------------------------------------------------------------
    # Context
    # -----------------------------------------------------------------------

    def resolve_context(self, directory: str = "", workspace: str = "") -> ExecutionContext:
        ctx = ExecutionContext(
            directory=resolve_directory(directory, self.config.terraform.default_dir),
            workspace=self.config.terraform.default_workspace,
        )
        if workspace:
            ctx = ctx.with_workspace(workspace)
        return ctx

    # -----------------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------------

    def execute_terraform(self, command: Command | str, directory: str = "", workspace: str = "") -> Report | None:
        """Resolve the context once, then run the command against it."""
        return self.execute(command, self.resolve_context(directory, workspace))

    def execute(self, command: Command | str, ctx: ExecutionContext) -> Report | None:
        runner = self._runners.get(command)
        if runner is None:
            logger.info(f"[EXECUTOR] Ignoring unrecognized command: {command!r}")
            return None
        command = Command(command)

        run = RunState(command=command, directory=ctx.directory, workspace=ctx.workspace)
        self.last_run = run

        # ── 1. Init ──
        self._transition(run, ExecutorState.INITIALIZING)
        try:
            self._stage(run, "init", ["init", "-input=false"], ctx.directory, self.timeouts.init)
        except ToolInvocationError as e:
            return self._finish(run, self._failure(e, ctx, include_hints=False))

        # ── 2. Workspace ──
        self._transition(run, ExecutorState.SELECTING_CONTEXT)
        try:
            selected = self.workspaces.ensure(ctx.directory, ctx.workspace)
            self._record(run, "workspace", selected)
        except WorkspaceError as e:
            self._record(run, "workspace", e.result)
            if self.config.terraform.strict_workspace:
                return self._finish(run, self._failure(e, ctx, include_hints=False))
            logger.warning(f"[EXECUTOR] {e} (continuing, strict_workspace is off)")

        # ── 3. Operation ──
        self._transition(run, ExecutorState.RUNNING)
        try:
            result = runner(run, ctx)
        except ToolInvocationError as e:
            return self._finish(run, self._failure(e, ctx, include_hints=command.is_plan))

        body = build_report(
            result.output,
            include_hints=command.is_plan,
            workspace=ctx.workspace,
            directory=ctx.directory,
            max_chars=self.config.report.max_output_chars,
        )
        return self._finish(run, Report(title=f"`{command.value}` succeeded", body=body, success=True))

    # -----------------------------------------------------------------------
    # Operation runners
    # -----------------------------------------------------------------------

    def plan(self, run: RunState, ctx: ExecutionContext) -> ProcessResult:
        return self._operation(run, Command.PLAN, ctx, self.timeouts.plan)

    def apply(self, run: RunState, ctx: ExecutionContext) -> ProcessResult:
        return self._operation(run, Command.APPLY, ctx, self.timeouts.apply)

    def plan_destroy(self, run: RunState, ctx: ExecutionContext) -> ProcessResult:
        return self._operation(run, Command.PLAN_DESTROY, ctx, self.timeouts.plan)

    def apply_destroy(self, run: RunState, ctx: ExecutionContext) -> ProcessResult:
        return self._operation(run, Command.APPLY_DESTROY, ctx, self.timeouts.apply)

    def _operation(self, run: RunState, command: Command, ctx: ExecutionContext, timeout: int) -> ProcessResult:
        return self._stage(run, command.value, _OPERATION_ARGS[command], ctx.directory, timeout)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _stage(self, run: RunState, stage: str, args: list[str], directory: str, timeout: int) -> ProcessResult:
        logger.info(f"[{stage.upper()}] terraform {' '.join(args)} in {directory}")
        result = self.runner.run(args, directory=directory, timeout=timeout)
        self._record(run, stage, result)
        if result.failed:
            logger.error(f"[{stage.upper()}] failed:\n{result.output}")
            raise ToolInvocationError(stage, result)
        logger.debug(f"[{stage.upper()}] output:\n{result.output}")
        return result

    def _record(self, run: RunState, stage: str, result: ProcessResult) -> None:
        run.stages.append(StageRecord(
            stage=stage,
            argv=result.argv,
            failed=result.failed,
            timed_out=result.timed_out,
        ))
        self.bus.emit("stage_completed", "executor", {
            "stage": stage,
            "argv": result.argv,
            "failed": result.failed,
        }, command=run.command.value)

    def _transition(self, run: RunState, to: ExecutorState) -> None:
        self.bus.emit("state_changed", "executor", {
            "from": run.state.value,
            "to": to.value,
        }, command=run.command.value)
        run.state = to

    def _failure(self, error: ToolInvocationError, ctx: ExecutionContext, include_hints: bool) -> Report:
        body = build_report(
            error.result.output,
            include_hints=include_hints,
            workspace=ctx.workspace,
            directory=ctx.directory,
            max_chars=self.config.report.max_output_chars,
        )
        return Report(title=f"`{error.stage}` failed", body=body, success=False)

    def _finish(self, run: RunState, report: Report) -> Report:
        self._transition(run, ExecutorState.DONE)
        run.succeeded = report.success
        logger.info(f"[EXECUTOR] {run.command.value} finished: {report.conclusion}")
        return report
