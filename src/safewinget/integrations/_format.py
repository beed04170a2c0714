"""Plain-text rendering shared by the agent tool adapters."""

from __future__ import annotations

from typing import Sequence

from safewinget._types import PackageDetails, PackageRecord
from safewinget.errors import (
    CommandFailed,
    ExecutionTimeout,
    ParseFailure,
    ProcessSpawnFailure,
    SafeWingetError,
    ValidationError,
)


def format_records(records: Sequence[PackageRecord]) -> str:
    if not records:
        return "No packages found."
    return "\n".join(str(record) for record in records)


def format_details(details: PackageDetails) -> str:
    lines = [f"{details.name} ({details.id})"]
    for label, value in (
        ("Version", details.version),
        ("Publisher", details.publisher),
        ("Homepage", details.homepage),
        ("License", details.license),
        ("Description", details.description),
    ):
        if value:
            lines.append(f"{label}: {value}")
    if details.tags:
        lines.append(f"Tags: {', '.join(details.tags)}")
    return "\n".join(lines)


def describe_error(error: SafeWingetError) -> str:
    """Short message for an agent. Never echoes the rejected input."""
    if isinstance(error, ValidationError):
        rule = f" ({error.rule})" if error.rule else ""
        return f"Blocked: {error.reason_code.value}{rule}"
    if isinstance(error, ExecutionTimeout):
        return f"Error: winget did not finish within {error.timeout}s"
    if isinstance(error, CommandFailed):
        return f"Error (exit {error.exit_code})"
    if isinstance(error, ProcessSpawnFailure):
        return "Error: winget is not available"
    if isinstance(error, ParseFailure):
        return f"Error: unreadable winget output ({error.stage.value})"
    return f"Error: {type(error).__name__}"
