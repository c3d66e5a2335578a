"""
tfpr CLI — The Interface

Two modes:
  1. tfpr run                         (GitHub Actions, reads $GITHUB_EVENT_PATH)
  2. tfpr exec plan -d infra -w dev   (local, prints the report)

Plus utilities:
  - tfpr status        (check tools + resolved config)
"""

from __future__ import annotations

import os
import shlex
import shutil
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.table import Table

from tfpr.audit_logger import AuditLogger
from tfpr.commands import Command, is_command
from tfpr.config_loader import check_github_env, load_config
from tfpr.controller import Controller, TriggerEvent, build_github_publisher
from tfpr.event_bus import bus
from tfpr.executor import Executor
from tfpr.github import GitHubApiError
from tfpr.identity import __codename__, __tagline__, __version__, BANNER
from tfpr.publisher import ConsolePublisher, PublishError, StatusCreationError

# Load .env from current directory or home
load_dotenv()
load_dotenv(Path.home() / ".tfpr" / ".env")

app = typer.Typer(
    name="tfpr",
    help=f"{__codename__} — {__tagline__}\nTerraform from pull request comments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    pass


def _print_banner():
    console.print(f"[bright_cyan]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def run(
    event_path: Optional[Path] = typer.Option(None, "--event-path", "-e", help="GitHub event payload (default: $GITHUB_EVENT_PATH)"),
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Checked-out repository root"),
    audit_log: Optional[Path] = typer.Option(None, "--audit-log", help="Append executor events to this JSONL file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Handle the comment that triggered this workflow."""
    _configure_logging(verbose)

    path = event_path or (Path(os.environ["GITHUB_EVENT_PATH"]) if os.environ.get("GITHUB_EVENT_PATH") else None)
    if path is None or not path.exists():
        console.print(f"[red]GitHub event payload not found: {path}[/]")
        raise typer.Exit(1)

    repo = repo.resolve()
    config = load_config(repo)
    if audit_log:
        AuditLogger(str(audit_log), bus)

    try:
        trigger = TriggerEvent.from_github_event(path)
    except (ValueError, KeyError) as e:
        console.print(f"[red]Unusable event payload: {e}[/]")
        raise typer.Exit(1)

    # Plain comments and non-PR issues never reach GitHub or terraform
    if not is_command(trigger.body):
        console.print("[dim]No command found.[/]")
        return

    try:
        publisher = build_github_publisher(trigger, config)
        controller = Controller(Executor(config, working_dir=repo), publisher)
        report = controller.run(trigger.body)
    except (ValueError, KeyError) as e:
        console.print(f"[red]Unusable event payload: {e}[/]")
        raise typer.Exit(1)
    except (StatusCreationError, PublishError, GitHubApiError) as e:
        console.print(f"[red]{type(e).__name__}: {e}[/]")
        raise typer.Exit(1)

    if report is None:
        console.print("[dim]No command found.[/]")
        return

    console.print(f"\n[bold {'green' if report.success else 'red'}]{report.title.replace('`', '')}[/]")
    if not report.success:
        raise typer.Exit(1)


@app.command("exec")
def exec_(
    command: Command = typer.Argument(..., help="plan | apply | plan-destroy | apply-destroy"),
    directory: str = typer.Option("", "--dir", "-d", help="Terraform root module directory"),
    workspace: str = typer.Option("", "--workspace", "-w", help="Terraform workspace"),
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Repository root"),
    raw: bool = typer.Option(False, "--raw", help="Print the comment markdown instead of rendering it"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run a command locally and print the report."""
    _configure_logging(verbose)

    repo = repo.resolve()
    config = load_config(repo)
    body = shlex.join(
        ["terraform", command.value]
        + (["-d", directory] if directory else [])
        + (["-w", workspace] if workspace else [])
    )

    controller = Controller(
        Executor(config, working_dir=repo),
        ConsolePublisher(console, raw=raw),
        quiet=raw,
    )
    report = controller.run(body)
    if report is None or not report.success:
        raise typer.Exit(1)


@app.command()
def status(
    repo: Optional[Path] = typer.Option(None, "--repo", "-r"),
):
    """Check tfpr configuration and readiness."""
    _print_banner()

    env_table = Table(title="GitHub Environment", border_style="cyan")
    env_table.add_column("Variable")
    env_table.add_column("Status")
    for key, available in check_github_env().items():
        env_table.add_row(key, "[green]✓ Set[/]" if available else "[red]✗ Missing[/]")
    console.print(env_table)

    config = load_config(repo.resolve() if repo else None)
    tf = config.terraform
    console.print(f"\n[bold]Terraform:[/]")
    console.print(f"  Binary:            {tf.binary}")
    console.print(f"  Default dir:       {tf.default_dir or '(caller / .)'}")
    console.print(f"  Default workspace: {tf.default_workspace}")
    console.print(f"  Strict workspace:  {tf.strict_workspace}")
    console.print(
        f"  Timeouts:          init {tf.timeouts.init}s, workspace {tf.timeouts.workspace}s, "
        f"plan {tf.timeouts.plan}s, apply {tf.timeouts.apply}s"
    )

    tools_table = Table(title="System Tools", border_style="cyan")
    tools_table.add_column("Tool")
    tools_table.add_column("Status")
    for tool in [tf.binary, config.github.gh_binary]:
        found = shutil.which(tool)
        tools_table.add_row(tool, f"[green]✓ {found}[/]" if found else "[dim]✗ Not found[/]")
    console.print(tools_table)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(
            lambda msg: console.print(f"{msg}", highlight=False, markup=False, style="dim"),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(f"{msg}", highlight=False, markup=False, style="dim"),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
