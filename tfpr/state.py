from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from tfpr.commands import Command


class ExecutorState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    SELECTING_CONTEXT = "selecting_context"
    RUNNING = "running"
    DONE = "done"


class StageRecord(BaseModel):
    """One terraform stage as it happened."""
    stage: str
    argv: list[str] = Field(default_factory=list)
    failed: bool = False
    timed_out: bool = False


class RunState(BaseModel):
    """Working memory for one executor invocation."""
    command: Command
    directory: str
    workspace: str
    state: ExecutorState = ExecutorState.IDLE
    stages: list[StageRecord] = Field(default_factory=list)
    succeeded: bool | None = None

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)
