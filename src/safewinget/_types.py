"""
Core type definitions for safewinget.

Uses dataclasses and enums for lightweight, immutable values. Every value here
is created and consumed within a single operation; nothing is shared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class OperationKind(Enum):
    """winget verbs the core is willing to run."""

    LIST = "list"
    UPGRADE = "upgrade"
    INSTALL = "install"
    UNINSTALL = "uninstall"
    REPAIR = "repair"
    SEARCH = "search"
    SOURCE = "source"
    SHOW = "show"


class ValidationContext(Enum):
    """What an untrusted string is supposed to be."""

    PACKAGE_IDENTIFIER = "package_identifier"
    SEARCH_TERM = "search_term"
    SOURCE_NAME = "source_name"
    FILE_PATH_SEGMENT = "file_path_segment"
    GENERIC_ARGUMENT = "generic_argument"


class ReasonCode(Enum):
    """Why a value or argument vector was accepted or rejected."""

    ACCEPTED = "accepted"
    EMPTY_INPUT = "empty_input"
    LENGTH_EXCEEDED = "length_exceeded"
    DANGEROUS_PATTERN = "dangerous_pattern"
    CONTEXT_MISMATCH = "context_mismatch"
    UNKNOWN_PARAMETER = "unknown_parameter"
    UNKNOWN_OPERATION = "unknown_operation"
    MISSING_VALUE = "missing_value"
    DUPLICATE_FLAG = "duplicate_flag"
    VALUE_NOT_ALLOWED = "value_not_allowed"


class PackageSource(Enum):
    """Package catalogue a record came from."""

    WINGET = "winget"
    MSSTORE = "msstore"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, text: str | None) -> PackageSource:
        """Map a source column value (any case) onto the closed set."""
        if not text:
            return cls.UNKNOWN
        try:
            return cls(text.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ParseStage(Enum):
    """Where output parsing gave up."""

    HEADER_NOT_FOUND = "header_not_found"
    COLUMN_MISALIGNMENT = "column_misalignment"
    EMPTY_OUTPUT = "empty_output"


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    """Outcome of validating one untrusted string."""

    accepted: bool
    reason_code: ReasonCode
    sanitized_value: str | None = None
    rule: str | None = None
    """Name of the deny rule that fired. Never the matched text."""

    @classmethod
    def accept(cls, value: str) -> ValidationVerdict:
        return cls(accepted=True, reason_code=ReasonCode.ACCEPTED, sanitized_value=value)

    @classmethod
    def reject(cls, reason: ReasonCode, rule: str | None = None) -> ValidationVerdict:
        return cls(accepted=False, reason_code=reason, rule=rule)

    def __bool__(self) -> bool:
        return self.accepted


@dataclass(frozen=True, slots=True)
class CommandIntent:
    """
    A validated winget invocation.

    Only :meth:`CommandPolicy.build_intent` creates these; every token in
    ``arguments`` has already passed validation.
    """

    operation: OperationKind
    arguments: tuple[str, ...] = ()

    @property
    def argv(self) -> tuple[str, ...]:
        """Verb followed by its arguments, one token per element."""
        return (self.operation.value, *self.arguments)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Immutable result from one external process run."""

    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_ms: int = 0
    truncated: bool = False
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """Return True if the process exited with code 0 on its own."""
        return self.exit_code == 0 and not self.timed_out and not self.cancelled


@dataclass(frozen=True, slots=True)
class RawRow:
    """One data line of a winget table, sliced into named cells."""

    cells: Mapping[str, str]
    line_number: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "cells", MappingProxyType(dict(self.cells)))

    def get(self, column: str, default: str = "") -> str:
        return self.cells.get(column, default)

    @property
    def name(self) -> str:
        return self.get("name")

    @property
    def id(self) -> str:
        return self.get("id")


@dataclass(frozen=True, slots=True, eq=False)
class PackageRecord:
    """
    A package as reported by winget.

    Two records are equal when they share ``id`` and ``source``; the other
    fields describe a particular observation of the package.
    """

    name: str
    id: str
    source: PackageSource = PackageSource.UNKNOWN
    installed_version: str | None = None
    available_version: str | None = None
    match: str | None = None
    operation: OperationKind | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageRecord):
            return NotImplemented
        return (self.id, self.source) == (other.id, other.source)

    def __hash__(self) -> int:
        return hash((self.id, self.source))

    def __str__(self) -> str:
        if self.available_version and self.installed_version:
            return f"{self.name} ({self.id}) - {self.installed_version} -> {self.available_version}"
        version = self.installed_version or self.available_version or "unknown"
        return f"{self.name} ({self.id}) - {version}"


@dataclass(frozen=True, slots=True)
class PackageDetails:
    """Detail fields printed by ``winget show``."""

    id: str
    name: str
    version: str | None = None
    publisher: str | None = None
    description: str | None = None
    homepage: str | None = None
    license: str | None = None
    tags: tuple[str, ...] = ()
    fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    """Result of a mutating operation (install, upgrade, ...)."""

    operation: OperationKind
    package_ids: tuple[str, ...]
    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Whether the package manager binary can be launched."""

    available: bool
    version: str | None = None
    detail: str | None = None
