"""
Exception hierarchy for safewinget.

Every failure the core can produce is one of these types, so callers can tell
"rejected input", "process trouble" and "unreadable output" apart without
inspecting message strings.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from safewinget._types import ReasonCode

if TYPE_CHECKING:
    from safewinget._types import ExecutionResult, ParseStage, ValidationContext

_FLAG_SHAPE = re.compile(r"--?[A-Za-z][A-Za-z0-9-]{0,40}")


class SafeWingetError(Exception):
    """Base class for all safewinget errors."""


class ConfigurationError(SafeWingetError):
    """Raised when runner or policy configuration is invalid."""


class ValidationError(SafeWingetError):
    """
    Raised when an argument is rejected before any process is started.

    Attributes:
        reason_code: Why the argument was rejected.
        rule: Name of the deny rule that fired, if any.
        context: Validation context the value was checked against.

    The offending value is deliberately not stored.
    """

    def __init__(
        self,
        reason_code: ReasonCode,
        *,
        rule: str | None = None,
        context: ValidationContext | None = None,
        detail: str = "",
    ) -> None:
        self.reason_code = reason_code
        self.rule = rule
        self.context = context
        parts = [reason_code.value]
        if rule:
            parts.append(f"rule={rule}")
        if context is not None:
            parts.append(f"context={context.value}")
        if detail:
            parts.append(detail)
        super().__init__(f"Validation failed: {', '.join(parts)}")


class UnknownParameter(ValidationError):
    """Raised when a flag is not permitted for the requested operation."""

    def __init__(self, flag: str, operation: str) -> None:
        self.flag = flag
        self.operation = operation
        # Only echo tokens that look like flags.
        shown = repr(flag) if _FLAG_SHAPE.fullmatch(flag) else "<redacted>"
        super().__init__(
            ReasonCode.UNKNOWN_PARAMETER,
            detail=f"flag {shown} not permitted for {operation!r}",
        )


class ExecutionError(SafeWingetError):
    """Base class for failures while running the external binary."""


class ProcessSpawnFailure(ExecutionError):
    """The binary could not be launched (missing, permission denied, ...)."""

    def __init__(self, executable: str, reason: str) -> None:
        self.executable = executable
        self.reason = reason
        super().__init__(f"Could not start {executable!r}: {reason}")


class _ResultCarryingError(ExecutionError):
    """Execution error that keeps the (partial) result for diagnostics."""

    def __init__(self, message: str, result: ExecutionResult) -> None:
        self.result = result
        super().__init__(message)


class ExecutionTimeout(_ResultCarryingError):
    """The process exceeded its time budget and was terminated."""

    def __init__(self, result: ExecutionResult, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s", result)


class ExecutionCancelled(ExecutionError):
    """The caller cancelled the operation before or during execution."""

    def __init__(self, message: str, result: ExecutionResult | None = None) -> None:
        self.result = result
        super().__init__(message)


class ProcessCleanupError(_ResultCarryingError):
    """The process survived termination and kill within the grace period."""


class CommandFailed(_ResultCarryingError):
    """winget exited non-zero and produced no usable table."""

    def __init__(self, result: ExecutionResult) -> None:
        super().__init__(f"winget exited with code {result.exit_code}", result)

    @property
    def exit_code(self) -> int:
        return self.result.exit_code


class ParseFailure(SafeWingetError):
    """
    Raised when winget output cannot be read as a table.

    Attributes:
        stage: Which step failed.
        offending_line: The line that broke parsing, when there is one.
    """

    def __init__(self, stage: ParseStage, offending_line: str | None = None) -> None:
        self.stage = stage
        self.offending_line = offending_line
        super().__init__(f"Could not parse winget output: {stage.value}")
