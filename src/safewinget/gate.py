"""
Admission gate bounding how many external processes run at once.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from safewinget.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AdmissionGate:
    """
    Counting semaphore with instrumented counters.

    One gate is shared by every runner invocation of a service; sibling
    components (a UI refresh, a health check) can share it too.

    Example:
        >>> gate = AdmissionGate(2)
        >>> async with gate:
        ...     ...
    """

    def __init__(self, capacity: int = 2) -> None:
        if capacity < 1:
            raise ConfigurationError("gate capacity must be at least 1")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_flight = 0
        self._peak = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_flight(self) -> int:
        """Number of holders currently admitted."""
        return self._in_flight

    @property
    def peak(self) -> int:
        """Highest ``in_flight`` value observed since creation or :meth:`reset_peak`."""
        return self._peak

    def reset_peak(self) -> None:
        self._peak = self._in_flight

    async def acquire(self) -> None:
        if self._semaphore.locked():
            logger.debug(f"Admission gate full ({self._capacity}), waiting")
        await self._semaphore.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        if self._in_flight <= 0:
            raise RuntimeError("AdmissionGate released more times than acquired")
        self._in_flight -= 1
        self._semaphore.release()

    async def __aenter__(self) -> AdmissionGate:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
