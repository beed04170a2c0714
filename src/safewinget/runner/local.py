"""
Local subprocess runner.

Launches the configured binary with ``asyncio.create_subprocess_exec``; there
is no shell anywhere on the path, and every argument is a discrete token.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

from safewinget._types import CommandIntent, ExecutionResult
from safewinget.config import RunnerConfig
from safewinget.errors import ExecutionCancelled, ProcessCleanupError, ProcessSpawnFailure
from safewinget.gate import AdmissionGate
from safewinget.runner._base import ProcessRunner

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"
_READ_CHUNK = 64 * 1024

_EXITED = "exited"
_TIMED_OUT = "timed_out"
_CANCELLED = "cancelled"


class _BoundedBuffer:
    """Keeps the first ``limit`` bytes of a stream and counts the rest."""

    def __init__(self, limit: int) -> None:
        self._data = bytearray()
        self._limit = limit
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        room = self._limit - len(self._data)
        if room > 0:
            self._data += chunk[:room]
        if len(chunk) > room:
            self.truncated = True

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


class _Capture:
    """Output and status of one run, readable at any point for partial results."""

    def __init__(self, limit: int) -> None:
        self.stdout = _BoundedBuffer(limit)
        self.stderr = _BoundedBuffer(limit)
        self.started = time.monotonic()
        self.outcome = _CANCELLED

    def result(self, exit_code: int) -> ExecutionResult:
        return ExecutionResult(
            exit_code=exit_code,
            stdout=self.stdout.text(),
            stderr=self.stderr.text(),
            timed_out=self.outcome == _TIMED_OUT,
            duration_ms=int((time.monotonic() - self.started) * 1000),
            truncated=self.stdout.truncated or self.stderr.truncated,
            cancelled=self.outcome == _CANCELLED,
        )


async def _drain(stream: asyncio.StreamReader | None, sink: _BoundedBuffer) -> None:
    # Keep reading past the bound so the child never blocks on a full pipe.
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK):
        sink.feed(chunk)


class SubprocessRunner(ProcessRunner):
    """
    Runs winget as a child process under an admission gate.

    Security features:
    - No shell: ``config.command + intent.argv`` go straight to exec
    - Timeout enforcement with terminate, grace period, then kill
    - Bounded output capture per stream
    - On POSIX the child leads its own process group, which is signalled as a whole

    Example:
        >>> runner = SubprocessRunner(RunnerConfig(timeout=60))
        >>> result = await runner.execute(intent)
        >>> print(result.exit_code)
    """

    def __init__(
        self,
        config: RunnerConfig | None = None,
        *,
        gate: AdmissionGate | None = None,
    ) -> None:
        """
        Initialize a runner.

        Args:
            config: Launch settings. Defaults to ``RunnerConfig()``.
            gate: Shared admission gate. Defaults to a new gate sized by
                ``config.max_concurrency``.
        """
        self._config = config or RunnerConfig()
        self._gate = gate or AdmissionGate(self._config.max_concurrency)

    @property
    def config(self) -> RunnerConfig:
        return self._config

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    @property
    def default_timeout(self) -> float:  # type: ignore[override]
        return self._config.timeout

    async def execute(
        self,
        intent: CommandIntent,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        return await self._run(intent.argv, timeout=timeout, cancel=cancel)

    async def check_version(
        self,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        return await self._run(("--version",), timeout=timeout, cancel=cancel)

    async def _run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> ExecutionResult:
        budget = self._config.timeout if timeout is None else timeout
        verb = argv[0] if argv else ""

        if cancel is not None and cancel.is_set():
            raise ExecutionCancelled(f"winget {verb} cancelled before start")

        async with self._gate:
            # Cancellation may have arrived while queued at the gate.
            if cancel is not None and cancel.is_set():
                raise ExecutionCancelled(f"winget {verb} cancelled before start")

            capture = _Capture(self._config.max_output_bytes)
            logger.debug(f"Running winget {verb} ({len(argv) - 1} args, timeout {budget}s)")

            async with self._launched(argv, capture) as proc:
                capture.outcome = await self._wait(proc, budget, cancel)
                if capture.outcome == _TIMED_OUT:
                    logger.warning(f"winget {verb} exceeded {budget}s, terminating pid {proc.pid}")
                elif capture.outcome == _CANCELLED:
                    logger.info(f"winget {verb} cancelled, terminating pid {proc.pid}")

            exit_code = proc.returncode if proc.returncode is not None else -1
            result = capture.result(exit_code)

        if capture.outcome == _CANCELLED:
            raise ExecutionCancelled(f"winget {verb} cancelled while running", result)

        logger.info(f"winget {verb} exited {result.exit_code} in {result.duration_ms}ms")
        return result

    @asynccontextmanager
    async def _launched(
        self,
        argv: Sequence[str],
        capture: _Capture,
    ) -> AsyncIterator[asyncio.subprocess.Process]:
        """Spawn the child and guarantee it is gone when the block exits, however it exits."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._config.command,
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(self._config.env) if self._config.env is not None else None,
                cwd=self._config.cwd,
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error(f"Could not start {self._config.executable}: {e.strerror or e}")
            raise ProcessSpawnFailure(self._config.executable, e.strerror or str(e)) from e

        readers = [
            asyncio.create_task(_drain(proc.stdout, capture.stdout)),
            asyncio.create_task(_drain(proc.stderr, capture.stderr)),
        ]
        try:
            yield proc
        finally:
            stopped = proc.returncode is not None or await self._stop(proc)
            await self._finish_readers(readers)
            if not stopped:
                logger.error(f"pid {proc.pid} survived kill; abandoning it")
                raise ProcessCleanupError(
                    f"Process {proc.pid} did not exit after kill",
                    capture.result(-1),
                )

    async def _wait(
        self,
        proc: asyncio.subprocess.Process,
        budget: float,
        cancel: asyncio.Event | None,
    ) -> str:
        exit_waiter = asyncio.ensure_future(proc.wait())
        waiters: set[asyncio.Future] = {exit_waiter}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=budget, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if exit_waiter in done:
            return _EXITED
        if cancel_waiter is not None and cancel_waiter in done:
            return _CANCELLED
        return _TIMED_OUT

    async def _stop(self, proc: asyncio.subprocess.Process) -> bool:
        """Terminate, then kill, waiting ``kill_grace`` after each. True once the process is gone."""
        grace = self._config.kill_grace
        for hard in (False, True):
            try:
                _signal(proc, hard=hard)
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=grace)
                return True
            except asyncio.TimeoutError:
                logger.warning(
                    f"pid {proc.pid} still running {grace}s after {'kill' if hard else 'terminate'}"
                )
        return False

    async def _finish_readers(self, readers: list[asyncio.Task]) -> None:
        # A grandchild that escaped the group can hold the pipes open.
        _, pending = await asyncio.wait(readers, timeout=self._config.kill_grace)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Output pipes still open after exit; stopped reading")
            await asyncio.gather(*pending, return_exceptions=True)


def _signal(proc: asyncio.subprocess.Process, *, hard: bool) -> None:
    if _POSIX:
        # pid doubles as the process group id because of start_new_session.
        os.killpg(proc.pid, signal.SIGKILL if hard else signal.SIGTERM)
    elif hard:
        proc.kill()
    else:
        proc.terminate()
