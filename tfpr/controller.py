"""
tfpr Controller

Deterministic glue between a PR comment and the executor:

  1. Parse the comment (no command → nothing happens)
  2. Open the in-progress status marker (must succeed)
  3. Run the executor
  4. Publish the single report
  5. Close the status marker with the report's outcome
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel

from tfpr.commands import ParseError, parse_command
from tfpr.config_loader import BridgeConfig
from tfpr.executor import Executor
from tfpr.github import GhTransport, GitHubPublisher, RepoRef
from tfpr.publisher import PublishError, Publisher
from tfpr.report import Report

console = Console()


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------

class TriggerEvent(BaseModel):
    """The parts of an issue_comment payload the bridge needs."""
    body: str
    issue_number: int
    repo: RepoRef
    head_sha: str | None = None

    @classmethod
    def from_github_event(cls, path: Path) -> "TriggerEvent":
        with open(path) as f:
            payload = json.load(f)

        body = (payload.get("comment") or {}).get("body")
        if not body:
            raise ValueError("No issue body found")

        issue = payload.get("issue") or payload.get("pull_request") or {}
        repository = payload.get("repository") or {}
        head = (payload.get("pull_request") or {}).get("head") or {}

        return cls(
            body=body,
            issue_number=issue["number"],
            repo=RepoRef(owner=repository["owner"]["login"], repo=repository["name"]),
            head_sha=head.get("sha"),
        )


def build_github_publisher(trigger: TriggerEvent, config: BridgeConfig) -> GitHubPublisher:
    transport = GhTransport(config.github.gh_binary, timeout=config.github.api_timeout)
    head_sha = trigger.head_sha or GitHubPublisher.resolve_head_sha(
        transport, trigger.repo, trigger.issue_number,
    )
    return GitHubPublisher(
        repo=trigger.repo,
        issue_number=trigger.issue_number,
        head_sha=head_sha,
        transport=transport,
        check_name_prefix=config.github.check_name_prefix,
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class Controller:

    def __init__(self, executor: Executor, publisher: Publisher, quiet: bool = False):
        self.executor = executor
        self.publisher = publisher
        self.quiet = quiet

    def run(self, body: str) -> Report | None:
        """Handle one comment body end to end."""
        logger.debug(f"[CONTROLLER] Body is: {body!r}")
        try:
            parsed = parse_command(body)
        except ParseError as e:
            logger.info(f"[CONTROLLER] No command found ({e})")
            return None

        command = parsed.command
        ctx = self.executor.resolve_context(parsed.directory, parsed.workspace)

        # StatusCreationError is fatal: nothing has run yet, nothing to report
        status_id = self.publisher.open_status(command, ctx)

        if not self.quiet:
            console.print(Panel(
                f"[bold]Command:[/] terraform {command.value}\n"
                f"[bold]Directory:[/] {ctx.directory}  |  [bold]Workspace:[/] {ctx.workspace}",
                title="⚙ tfpr",
                border_style="cyan",
            ))

        try:
            report = self.executor.execute(command, ctx)
        except Exception as e:
            logger.error(f"[CONTROLLER] Executor crashed: {e}")
            self._close_after_error(status_id, command, Report(
                title=f"`{command.value}` errored", body=str(e), success=False,
            ))
            raise

        try:
            self.publisher.publish(report)
        except PublishError:
            self._close_after_error(status_id, command, report.model_copy(update={"success": False}))
            raise

        self.publisher.close_status(status_id, command, report)
        return report

    def _close_after_error(self, status_id: int, command, report: Report) -> None:
        """Close the status while another error is in flight; that error wins."""
        try:
            self.publisher.close_status(status_id, command, report)
        except Exception as e:
            logger.error(f"[CONTROLLER] Could not close status {status_id}: {e}")
