"""Pytest configuration and fixtures for safewinget tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from helpers import fake_config
from safewinget import CommandPolicy, PackageService, SubprocessRunner


@pytest.fixture
def standard_policy() -> CommandPolicy:
    """Create the standard command policy."""
    return CommandPolicy.standard()


@pytest.fixture
def read_only_policy() -> CommandPolicy:
    """Create a policy without mutating operations."""
    return CommandPolicy.read_only()


@pytest_asyncio.fixture
async def runner() -> AsyncGenerator[SubprocessRunner, None]:
    """Create a SubprocessRunner that launches the fake winget."""
    runner = SubprocessRunner(fake_config())
    try:
        yield runner
    finally:
        await runner.close()


@pytest_asyncio.fixture
async def service() -> AsyncGenerator[PackageService, None]:
    """Create a PackageService backed by the fake winget."""
    service = PackageService(config=fake_config())
    try:
        yield service
    finally:
        await service.close()
