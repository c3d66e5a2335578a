"""
Terraform process runner.

Builds argv lists for each stage and runs them one at a time with a
bounded timeout. Results are captured, never streamed.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger
from pydantic import BaseModel


class ProcessResult(BaseModel):
    """Captured outcome of one terraform invocation."""
    argv: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def exit_failed(self) -> bool:
        return self.timed_out or self.returncode != 0

    @property
    def failed(self) -> bool:
        """Non-zero exit or anything written to stderr counts as failure."""
        return self.exit_failed or bool(self.stderr.strip())

    @property
    def output(self) -> str:
        """Everything the process said, stdout first."""
        parts = [p.rstrip() for p in (self.stdout, self.stderr) if p.strip()]
        return "\n".join(parts)


class ToolInvocationError(RuntimeError):
    """A terraform stage failed. Carries the stage name and its result."""

    def __init__(self, stage: str, result: ProcessResult):
        super().__init__(f"terraform {stage} failed: {' '.join(result.argv)}")
        self.stage = stage
        self.result = result


class TerraformRunner:
    """
    Runs terraform subcommands from a fixed working directory.

    `directory` is passed through `-chdir` so the process itself never
    changes cwd.
    """

    def __init__(self, binary: str = "terraform", working_dir: Path | None = None):
        self.binary = binary
        self.working_dir = (working_dir or Path.cwd()).resolve()

    def build_argv(self, args: list[str], directory: str = "") -> list[str]:
        argv = [self.binary]
        if directory and directory != ".":
            argv.append(f"-chdir={directory}")
        return argv + list(args)

    def run(self, args: list[str], directory: str = "", timeout: int | None = None) -> ProcessResult:
        argv = self.build_argv(args, directory)
        logger.debug(f"[RUNNER] {' '.join(argv)} (timeout={timeout}s)")
        try:
            proc = subprocess.run(
                argv,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"[RUNNER] Timed out after {timeout}s: {' '.join(argv)}")
            return ProcessResult(
                argv=argv,
                stdout=_decode(e.stdout),
                stderr=f"{_decode(e.stderr)}\nTimed out after {timeout}s".lstrip(),
                timed_out=True,
            )
        except FileNotFoundError as e:
            return ProcessResult(argv=argv, returncode=127, stderr=str(e))

        return ProcessResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
