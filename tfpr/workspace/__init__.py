"""
tfpr Workspace Isolation

Every operation runs against a named terraform workspace. The manager
selects it, creating it first when it does not exist yet, and then
checks that terraform actually reports it as current.
"""

from __future__ import annotations

from loguru import logger

from tfpr.runner import ProcessResult, TerraformRunner, ToolInvocationError


class WorkspaceError(ToolInvocationError):
    """The requested workspace could not be selected."""

    def __init__(self, workspace: str, result: ProcessResult, reason: str):
        super().__init__("workspace", result)
        self.workspace = workspace
        self.reason = reason
        self.args = (f"workspace '{workspace}': {reason}",)


class WorkspaceManager:
    """
    Select-or-create for terraform workspaces.

    All calls are scoped to the same directory as the operation that
    follows, so the workspace lands in the right backend.
    """

    def __init__(self, runner: TerraformRunner, timeout: int | None = None):
        self.runner = runner
        self.timeout = timeout

    def ensure(self, directory: str, workspace: str) -> ProcessResult:
        """
        Make `workspace` the selected one.

        Returns the result of the step that made it current. Raises
        WorkspaceError if neither select nor new worked, or if terraform
        reports a different workspace afterwards.
        """
        selected = self._workspace("select", workspace, directory=directory)
        if selected.failed:
            logger.info(f"[WORKSPACE] '{workspace}' not selectable, creating it")
            logger.debug(f"[WORKSPACE] select output:\n{selected.output}")
            created = self._workspace("new", workspace, directory=directory)
            if created.failed:
                logger.error(f"[WORKSPACE] Could not create '{workspace}':\n{created.output}")
                raise WorkspaceError(workspace, _merge(selected, created), "select and new both failed")
            selected = created

        current = self.current(directory)
        if current != workspace:
            raise WorkspaceError(
                workspace,
                selected,
                f"terraform reports '{current or '?'}' as the selected workspace",
            )

        logger.info(f"[WORKSPACE] Using '{workspace}' in {directory or '.'}")
        return selected

    def current(self, directory: str) -> str:
        """Name of the currently selected workspace, or '' when unknown."""
        shown = self._workspace("show", directory=directory)
        if shown.failed:
            logger.warning(f"[WORKSPACE] workspace show failed:\n{shown.output}")
            return ""
        return shown.stdout.strip()

    def _workspace(self, *args: str, directory: str) -> ProcessResult:
        return self.runner.run(["workspace", *args], directory=directory, timeout=self.timeout)


def _merge(first: ProcessResult, second: ProcessResult) -> ProcessResult:
    """Fold two attempts into one result so both outputs reach the report."""
    return ProcessResult(
        argv=second.argv,
        returncode=second.returncode,
        stdout="\n".join(p for p in (first.stdout.rstrip(), second.stdout.rstrip()) if p),
        stderr="\n".join(p for p in (first.stderr.rstrip(), second.stderr.rstrip()) if p),
        timed_out=first.timed_out or second.timed_out,
    )
