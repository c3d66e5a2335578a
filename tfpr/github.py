"""
GitHub publisher.

Talks to the REST API through the `gh` CLI (`gh api`), the same way the
rest of the tooling reaches GitHub. Auth comes from GH_TOKEN/GITHUB_TOKEN.

    check run  → POST  repos/{owner}/{repo}/check-runs
                 PATCH repos/{owner}/{repo}/check-runs/{id}
    comment    → POST  repos/{owner}/{repo}/issues/{n}/comments
"""

from __future__ import annotations

import json
import subprocess
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel

from tfpr.commands import Command
from tfpr.publisher import PublishError, Publisher, StatusCreationError
from tfpr.report import Report, render_comment

if TYPE_CHECKING:
    from tfpr.executor import ExecutionContext


class GitHubApiError(RuntimeError):
    def __init__(self, method: str, path: str, detail: str):
        super().__init__(f"gh api {method} {path} failed: {detail.strip()}")
        self.method = method
        self.path = path


class RepoRef(BaseModel):
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_slug(cls, slug: str) -> "RepoRef":
        owner, _, repo = slug.partition("/")
        if not owner or not repo:
            raise ValueError(f"Expected owner/repo, got {slug!r}")
        return cls(owner=owner, repo=repo)


class GhTransport:
    """Thin `gh api` wrapper returning decoded JSON."""

    def __init__(self, gh_binary: str = "gh", timeout: int = 30):
        self.gh_binary = gh_binary
        self.timeout = timeout

    def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        cmd = [self.gh_binary, "api", "--method", method, path]
        if payload is not None:
            cmd += ["--input", "-"]

        logger.debug(f"[GITHUB] {method} {path}")
        try:
            result = subprocess.run(
                cmd,
                input=json.dumps(payload) if payload is not None else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            raise GitHubApiError(method, path, str(e))

        if result.returncode != 0:
            raise GitHubApiError(method, path, result.stderr or result.stdout)

        if not result.stdout.strip():
            return {}
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise GitHubApiError(method, path, f"invalid JSON response: {e}")


class GitHubPublisher(Publisher):
    """
    Publishes to one pull request.

    `head_sha` scopes the check run. For issue_comment events GitHub does
    not include it, so `resolve_head_sha` looks it up from the PR.
    """

    def __init__(
        self,
        repo: RepoRef,
        issue_number: int,
        head_sha: str,
        transport: GhTransport | None = None,
        check_name_prefix: str = "terraform-pr",
    ):
        self.repo = repo
        self.issue_number = issue_number
        self.head_sha = head_sha
        self.transport = transport or GhTransport()
        self.check_name_prefix = check_name_prefix

    @staticmethod
    def resolve_head_sha(transport: GhTransport, repo: RepoRef, issue_number: int) -> str:
        data = transport.request("GET", f"repos/{repo.slug}/pulls/{issue_number}")
        sha = (data.get("head") or {}).get("sha")
        if not sha:
            raise GitHubApiError("GET", f"repos/{repo.slug}/pulls/{issue_number}", "no head sha in response")
        return sha

    def check_name(self, command: Command) -> str:
        return f"{self.check_name_prefix}-{command.value}"

    def open_status(self, command: Command, ctx: "ExecutionContext") -> int:
        payload = {
            "name": self.check_name(command),
            "head_sha": self.head_sha,
            "status": "in_progress",
            "output": {
                "title": f"terraform {command.value}",
                "summary": f"Running `terraform {command.value}` in `{ctx.directory}` on workspace `{ctx.workspace}`",
                "text": f"Triggered from #{self.issue_number}",
            },
        }
        try:
            data = self.transport.request("POST", f"repos/{self.repo.slug}/check-runs", payload)
        except GitHubApiError as e:
            raise StatusCreationError(str(e)) from e

        check_id = data.get("id")
        if not check_id or data.get("status") not in (None, "in_progress", "queued"):
            raise StatusCreationError(f"Check run was not created: {data}")

        logger.info(f"[GITHUB] Opened check run {check_id} ({payload['name']})")
        return int(check_id)

    def close_status(self, status_id: int, command: Command, report: Report) -> None:
        payload = {
            "status": "completed",
            "conclusion": report.conclusion,
            "output": {
                "title": report.title.replace("`", ""),
                "summary": f"terraform {command.value}: {report.conclusion}",
            },
        }
        try:
            self.transport.request("PATCH", f"repos/{self.repo.slug}/check-runs/{status_id}", payload)
        except GitHubApiError as e:
            raise PublishError(f"Could not close check run {status_id}: {e}") from e
        logger.info(f"[GITHUB] Closed check run {status_id} as {report.conclusion}")

    def publish(self, report: Report) -> None:
        path = f"repos/{self.repo.slug}/issues/{self.issue_number}/comments"
        try:
            self.transport.request("POST", path, {"body": render_comment(report)})
        except GitHubApiError as e:
            raise PublishError(f"Could not comment on #{self.issue_number}: {e}") from e
        logger.info(f"[GITHUB] Commented on #{self.issue_number}: {report.title}")
