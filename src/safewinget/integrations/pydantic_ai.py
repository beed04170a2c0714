"""
PydanticAI integration for safewinget.

Provides helpers to create PydanticAI-compatible tools.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

try:
    from pydantic_ai import Tool
except ImportError:
    raise ImportError(
        "PydanticAI integration requires 'pydantic-ai'. "
        "Install with `pip install safewinget[pydantic-ai]`"
    )

from safewinget.errors import SafeWingetError
from safewinget.integrations._format import describe_error, format_details, format_records

if TYPE_CHECKING:
    from safewinget.service import PackageService


def create_pydantic_ai_tools(service: PackageService) -> list[Tool]:
    """
    Create read-only PydanticAI tools backed by ``service``.

    Example:
        >>> from pydantic_ai import Agent
        >>> agent = Agent("openai:gpt-4o", tools=create_pydantic_ai_tools(PackageService()))
    """

    async def search_packages(query: str, source: str | None = None, count: int | None = None) -> str:
        """
        Search the winget catalogue by name or keyword.

        Args:
            query: Words to search for.
            source: 'winget' or 'msstore'; omit for both.
            count: Maximum number of results, 1-1000.
        """
        try:
            return format_records(await service.search(query, source=source, count=count))
        except SafeWingetError as e:
            return describe_error(e)

    async def list_installed(source: str | None = None) -> str:
        """List software installed on this machine."""
        try:
            return format_records(await service.list_installed(source=source))
        except SafeWingetError as e:
            return describe_error(e)

    async def check_updates(source: str | None = None) -> str:
        """List installed software that has an update available."""
        try:
            return format_records(await service.check_updates(source=source))
        except SafeWingetError as e:
            return describe_error(e)

    async def show_package(package_id: str) -> str:
        """
        Show details for one package.

        Args:
            package_id: Exact winget package id, e.g. Git.Git.
        """
        try:
            return format_details(await service.show(package_id))
        except SafeWingetError as e:
            return describe_error(e)

    return [
        Tool(search_packages, takes_ctx=False),
        Tool(list_installed, takes_ctx=False),
        Tool(check_updates, takes_ctx=False),
        Tool(show_package, takes_ctx=False),
    ]
