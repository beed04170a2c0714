"""Tests for AdmissionGate and the concurrency ceiling."""

from __future__ import annotations

import asyncio

import pytest

from helpers import fake_config
from safewinget import (
    AdmissionGate,
    CommandIntent,
    ConfigurationError,
    OperationKind,
    SubprocessRunner,
)


class TestAdmissionGate:
    """Tests for the gate on its own."""

    async def test_counts_holders(self) -> None:
        gate = AdmissionGate(2)
        async with gate:
            assert gate.in_flight == 1
            async with gate:
                assert gate.in_flight == 2
        assert gate.in_flight == 0
        assert gate.peak == 2

    async def test_never_exceeds_capacity(self) -> None:
        gate = AdmissionGate(3)

        async def work() -> None:
            async with gate:
                assert gate.in_flight <= gate.capacity
                await asyncio.sleep(0.01)

        await asyncio.gather(*(work() for _ in range(20)))
        assert gate.peak == 3
        assert gate.in_flight == 0

    async def test_releases_on_error(self) -> None:
        gate = AdmissionGate(1)
        with pytest.raises(RuntimeError):
            async with gate:
                raise RuntimeError("boom")
        assert gate.in_flight == 0

    async def test_reset_peak(self) -> None:
        gate = AdmissionGate(2)
        async with gate:
            pass
        gate.reset_peak()
        assert gate.peak == 0

    def test_over_release(self) -> None:
        with pytest.raises(RuntimeError):
            AdmissionGate(1).release()

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ConfigurationError):
            AdmissionGate(0)


class TestRunnerConcurrency:
    """K+5 simultaneous runs through a gate of K."""

    @pytest.mark.parametrize("capacity", [1, 2])
    async def test_ceiling_holds_for_real_processes(self, capacity: int) -> None:
        gate = AdmissionGate(capacity)
        runner = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="0.2"), gate=gate)
        intent = CommandIntent(OperationKind.LIST)

        results = await asyncio.gather(*(runner.execute(intent) for _ in range(capacity + 5)))

        assert all(result.success for result in results)
        assert gate.peak == capacity
        assert gate.in_flight == 0

    async def test_gate_shared_between_runners(self) -> None:
        gate = AdmissionGate(1)
        first = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="0.1"), gate=gate)
        second = SubprocessRunner(fake_config(FAKE_WINGET_DELAY="0.1"), gate=gate)
        intent = CommandIntent(OperationKind.LIST)

        await asyncio.gather(first.execute(intent), second.execute(intent), first.execute(intent))
        assert gate.peak == 1
