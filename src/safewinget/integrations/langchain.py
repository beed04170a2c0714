"""LangChain integration for safewinget."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from safewinget.errors import SafeWingetError
from safewinget.integrations._format import describe_error, format_details, format_records

if TYPE_CHECKING:
    from safewinget.service import PackageService

HAS_LANGCHAIN = False
_StructuredTool: Any = None

try:
    import langchain_core.tools

    _StructuredTool = langchain_core.tools.StructuredTool
    HAS_LANGCHAIN = True
except ImportError:
    pass


def create_langchain_tools(service: PackageService) -> dict[str, Any]:
    """
    Create read-only LangChain tools from a PackageService.

    Only listing, searching and showing are exposed; nothing that installs,
    upgrades or removes software.

    Args:
        service: The service to wrap.

    Returns:
        Dictionary of LangChain StructuredTool instances.

    Raises:
        ImportError: If langchain-core is not installed.

    Example:
        >>> tools = create_langchain_tools(PackageService())
        >>> agent = create_react_agent(llm, list(tools.values()))
    """
    if not HAS_LANGCHAIN:
        raise ImportError(
            "LangChain integration requires langchain-core. "
            "Install with: pip install safewinget[langchain]"
        )

    async def search_packages(query: str, source: str | None = None, count: int | None = None) -> str:
        """Search the winget catalogue."""
        try:
            return format_records(await service.search(query, source=source, count=count))
        except SafeWingetError as e:
            return describe_error(e)

    async def list_installed(source: str | None = None) -> str:
        """List installed packages."""
        try:
            return format_records(await service.list_installed(source=source))
        except SafeWingetError as e:
            return describe_error(e)

    async def check_updates(source: str | None = None) -> str:
        """List installed packages with a newer version available."""
        try:
            return format_records(await service.check_updates(source=source))
        except SafeWingetError as e:
            return describe_error(e)

    async def show_package(package_id: str) -> str:
        """Show catalogue details for a package id."""
        try:
            return format_details(await service.show(package_id))
        except SafeWingetError as e:
            return describe_error(e)

    return {
        "search_packages": _StructuredTool.from_function(
            coroutine=search_packages,
            name="search_packages",
            description="Search the winget catalogue by name or keyword. "
            "Optional source is 'winget' or 'msstore'; optional count is 1-1000.",
        ),
        "list_installed": _StructuredTool.from_function(
            coroutine=list_installed,
            name="list_installed",
            description="List software installed on this machine.",
        ),
        "check_updates": _StructuredTool.from_function(
            coroutine=check_updates,
            name="check_updates",
            description="List installed software that has an update available.",
        ),
        "show_package": _StructuredTool.from_function(
            coroutine=show_package,
            name="show_package",
            description="Show publisher, version and description for an exact package id.",
        ),
    }
