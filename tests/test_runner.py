"""Tests for SubprocessRunner."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest

from helpers import fake_config
from safewinget import (
    CommandIntent,
    ExecutionCancelled,
    OperationKind,
    ProcessSpawnFailure,
    RunnerConfig,
    SubprocessRunner,
)

LIST = CommandIntent(OperationKind.LIST)
SEARCH = CommandIntent(OperationKind.SEARCH, ("-q", "visual studio code"))

posix_only = pytest.mark.skipif(os.name != "posix", reason="uses POSIX signals and process groups")


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class TestExecution:
    """Tests for normal runs."""

    async def test_captures_stdout_and_exit_code(self, runner: SubprocessRunner) -> None:
        result = await runner.execute(LIST)
        assert result.exit_code == 0
        assert result.success
        assert "Git.Git" in result.stdout
        assert "fake winget done" in result.stderr
        assert not result.timed_out
        assert result.duration_ms >= 0

    async def test_arguments_are_passed_verbatim(self) -> None:
        """Each argv element reaches the child as one argument; nothing is shell-expanded."""
        runner = SubprocessRunner(fake_config(FAKE_WINGET_ECHO="1"))
        intent = CommandIntent(OperationKind.SEARCH, ("-q", "visual studio code", "--count", "5"))
        result = await runner.execute(intent)
        assert result.stdout.splitlines() == ["search", "-q", "visual studio code", "--count", "5"]

    async def test_propagates_non_zero_exit(self) -> None:
        runner = SubprocessRunner(fake_config(FAKE_WINGET_EXIT="3"))
        result = await runner.execute(LIST)
        assert result.exit_code == 3
        assert not result.success

    async def test_output_is_bounded(self) -> None:
        config = RunnerConfig(
            command=fake_config().command,
            max_output_bytes=4096,
            env={**os.environ, "FAKE_WINGET_FLOOD": "200000"},
        )
        result = await SubprocessRunner(config).execute(LIST)
        assert result.truncated
        assert len(result.stdout) == 4096
        assert result.exit_code == 0

    async def test_check_version(self, runner: SubprocessRunner) -> None:
        result = await runner.check_version()
        assert result.stdout.strip() == "v1.7.10861"

    async def test_spawn_failure(self, tmp_path: Path) -> None:
        runner = SubprocessRunner(RunnerConfig(command=(str(tmp_path / "no-such-winget"),)))
        with pytest.raises(ProcessSpawnFailure) as exc_info:
            await runner.execute(LIST)
        assert "no-such-winget" in exc_info.value.executable


class TestTimeout:
    """Tests for the wall-clock budget."""

    async def test_slow_process_times_out(self, tmp_path: Path) -> None:
        pidfile = tmp_path / "pid"
        runner = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="30", FAKE_WINGET_PIDFILE=str(pidfile)))

        started = time.monotonic()
        result = await runner.execute(LIST, timeout=0.1)
        elapsed = time.monotonic() - started

        assert result.timed_out
        assert not result.success
        # timeout + one grace period + interpreter start-up slack
        assert elapsed < 0.1 + runner.config.kill_grace + 3.0
        if pidfile.exists():
            assert not _alive(int(pidfile.read_text()))

    async def test_repeated_timeouts_leave_no_orphans(self, tmp_path: Path) -> None:
        pids = []
        for i in range(2):
            pidfile = tmp_path / f"pid{i}"
            runner = SubprocessRunner(
                fake_config(FAKE_WINGET_DELAY="30", FAKE_WINGET_PIDFILE=str(pidfile))
            )
            result = await runner.execute(LIST, timeout=0.5)
            assert result.timed_out
            if pidfile.exists():
                pids.append(int(pidfile.read_text()))
        assert not any(_alive(pid) for pid in pids)

    @posix_only
    async def test_kill_after_ignored_terminate(self, tmp_path: Path) -> None:
        """A child that ignores SIGTERM is killed after the grace period."""
        pidfile = tmp_path / "pid"
        config = fake_config(
            FAKE_WINGET_DELAY="30",
            FAKE_WINGET_IGNORE_TERM="1",
            FAKE_WINGET_PIDFILE=str(pidfile),
        )
        runner = SubprocessRunner(config)

        # Give the child time to install its handler before the deadline.
        result = await runner.execute(LIST, timeout=1.0)
        assert result.timed_out
        assert result.exit_code != 0
        if pidfile.exists():
            assert not _alive(int(pidfile.read_text()))


class TestCancellation:
    """Tests for cooperative cancellation."""

    async def test_cancel_before_spawn_never_spawns(self, tmp_path: Path) -> None:
        pidfile = tmp_path / "pid"
        runner = SubprocessRunner(fake_config(FAKE_WINGET_PIDFILE=str(pidfile)))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(ExecutionCancelled) as exc_info:
            await runner.execute(LIST, cancel=cancel)
        assert exc_info.value.result is None
        assert not pidfile.exists()
        assert runner.gate.in_flight == 0

    async def test_cancel_during_wait(self, tmp_path: Path) -> None:
        pidfile = tmp_path / "pid"
        runner = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="30", FAKE_WINGET_PIDFILE=str(pidfile)))
        cancel = asyncio.Event()

        async def trip() -> None:
            await asyncio.sleep(0.3)
            cancel.set()

        tripper = asyncio.create_task(trip())
        with pytest.raises(ExecutionCancelled) as exc_info:
            await runner.execute(LIST, cancel=cancel)
        await tripper

        assert exc_info.value.result is not None
        assert exc_info.value.result.cancelled
        assert runner.gate.in_flight == 0
        if pidfile.exists():
            assert not _alive(int(pidfile.read_text()))

    async def test_task_cancellation_releases_process(self, tmp_path: Path) -> None:
        pidfile = tmp_path / "pid"
        runner = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="30", FAKE_WINGET_PIDFILE=str(pidfile)))

        task = asyncio.create_task(runner.execute(LIST))
        await asyncio.sleep(0.5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert runner.gate.in_flight == 0
        if pidfile.exists():
            assert not _alive(int(pidfile.read_text()))


async def test_environment_is_passed() -> None:
    runner = SubprocessRunner(fake_config(FAKE_WINGET_OUTPUT="custom answer"))
    result = await runner.execute(SEARCH)
    assert result.stdout == "custom answer"
