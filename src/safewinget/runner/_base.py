"""
Abstract base class for process runners.

The service talks to winget only through this interface, so tests and
alternative launchers (a remote agent, a recorded transcript) can stand in.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from safewinget._types import CommandIntent, ExecutionResult


class ProcessRunner(ABC):
    """
    Abstract base for all process runners.

    Runners execute a validated :class:`CommandIntent` and report what the
    process did. They never decide what may be run.
    """

    default_timeout: float = 120.0

    @abstractmethod
    async def execute(
        self,
        intent: CommandIntent,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """
        Run the package manager with ``intent.argv``.

        Args:
            intent: A validated command.
            timeout: Seconds before the process is terminated. ``None`` uses
                the runner's configured default.
            cancel: Event that, once set, stops the run.

        Returns:
            ExecutionResult; ``timed_out`` is set when the budget ran out.

        Raises:
            ProcessSpawnFailure: The binary could not be launched.
            ExecutionCancelled: ``cancel`` was set.
            ProcessCleanupError: The process could not be stopped.
        """
        ...

    @abstractmethod
    async def check_version(
        self,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Run the binary with its fixed version flag. Cancellation behaves as in :meth:`execute`."""
        ...

    async def close(self) -> None:
        """Release runner resources. Idempotent."""

    async def __aenter__(self) -> ProcessRunner:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, cleaning up resources."""
        await self.close()
