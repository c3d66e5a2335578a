"""
Publishers announce a run (status marker) and deliver its report.

The controller talks to this interface only; GitHub and the local
console are interchangeable behind it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from tfpr.commands import Command
from tfpr.report import Report, render_comment

if TYPE_CHECKING:
    from tfpr.executor import ExecutionContext


class PublishError(RuntimeError):
    """A finished report could not be delivered."""
    pass


class StatusCreationError(RuntimeError):
    """The in-progress status marker could not be opened."""
    pass


class Publisher(ABC):

    @abstractmethod
    def open_status(self, command: Command, ctx: "ExecutionContext") -> int:
        """Open an in-progress marker. Raise StatusCreationError on failure."""
        ...

    @abstractmethod
    def close_status(self, status_id: int, command: Command, report: Report) -> None:
        ...

    @abstractmethod
    def publish(self, report: Report) -> None:
        """Deliver the report. Raise PublishError on failure."""
        ...


class ConsolePublisher(Publisher):
    """Prints everything to a rich console. Used by `tfpr exec`."""

    def __init__(self, console: Console | None = None, raw: bool = False):
        self.console = console or Console()
        self.raw = raw
        self._next_id = 1

    def open_status(self, command: Command, ctx: "ExecutionContext") -> int:
        status_id = self._next_id
        self._next_id += 1
        self.console.print(
            f"[bold cyan]▶ terraform {command.value}[/] "
            f"[dim]dir={ctx.directory} workspace={ctx.workspace}[/]"
        )
        return status_id

    def close_status(self, status_id: int, command: Command, report: Report) -> None:
        color = "green" if report.success else "red"
        self.console.print(f"[bold {color}]■ terraform {command.value}: {report.conclusion}[/]")

    def publish(self, report: Report) -> None:
        if self.raw:
            self.console.print(render_comment(report), markup=False, highlight=False, soft_wrap=True)
            return
        self.console.print(Panel(
            Markdown(report.body),
            title=report.title.replace("`", ""),
            border_style="green" if report.success else "red",
        ))
