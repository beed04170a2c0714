"""Test doubles and configuration helpers."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

from safewinget import CommandIntent, ExecutionCancelled, ExecutionResult, ProcessRunner, RunnerConfig

FAKE_WINGET = Path(__file__).with_name("fake_winget.py")


def fake_config(**env: str) -> RunnerConfig:
    """RunnerConfig that launches the fake winget with extra environment variables."""
    return RunnerConfig(
        command=(sys.executable, str(FAKE_WINGET)),
        timeout=10.0,
        kill_grace=1.0,
        env={**os.environ, "PYTHONIOENCODING": "utf-8", **env},
    )


class RecordingRunner(ProcessRunner):
    """Runner that returns canned results and remembers every intent it was given."""

    def __init__(self, stdout: str = "", exit_code: int = 0, *, timed_out: bool = False) -> None:
        self.stdout = stdout
        self.exit_code = exit_code
        self.timed_out = timed_out
        self.intents: list[CommandIntent] = []
        self.closed = False

    async def execute(
        self,
        intent: CommandIntent,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        self.intents.append(intent)
        return ExecutionResult(
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr="",
            timed_out=self.timed_out,
        )

    async def check_version(
        self,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        if cancel is not None and cancel.is_set():
            raise ExecutionCancelled("winget --version cancelled before start")
        return ExecutionResult(exit_code=self.exit_code, stdout=self.stdout, stderr="")

    async def close(self) -> None:
        self.closed = True

    @property
    def last_argv(self) -> tuple[str, ...]:
        return self.intents[-1].argv
