"""
Top-level facade for safewinget.
"""

from safewinget._types import (
    CommandIntent,
    ExecutionResult,
    HealthStatus,
    OperationKind,
    OperationOutcome,
    PackageDetails,
    PackageRecord,
    PackageSource,
    ParseStage,
    RawRow,
    ReasonCode,
    ValidationContext,
    ValidationVerdict,
)
from safewinget.config import RunnerConfig
from safewinget.errors import (
    CommandFailed,
    ConfigurationError,
    ExecutionCancelled,
    ExecutionError,
    ExecutionTimeout,
    ParseFailure,
    ProcessCleanupError,
    ProcessSpawnFailure,
    SafeWingetError,
    UnknownParameter,
    ValidationError,
)
from safewinget.gate import AdmissionGate
from safewinget.parsing import map_rows, parse_details, parse_table
from safewinget.runner import ProcessRunner, SubprocessRunner
from safewinget.security import CommandPolicy, InputValidator, validate
from safewinget.service import PackageService

__version__ = "0.1.0"


# Factory
def create_service(
    *,
    read_only: bool = False,
    config: RunnerConfig | None = None,
    gate: AdmissionGate | None = None,
) -> PackageService:
    """
    Create a PackageService configured from the environment.

    Args:
        read_only: Only permit list, search, show and source operations.
        config: Launch settings. Defaults to ``RunnerConfig.from_env()``.
        gate: Admission gate shared with other process-launching code.
    """
    policy = CommandPolicy.read_only() if read_only else CommandPolicy.standard()
    return PackageService(policy, config=config or RunnerConfig.from_env(), gate=gate)


# Exports
__all__ = [
    "create_service",
    "PackageService",
    "CommandPolicy",
    "InputValidator",
    "validate",
    "ProcessRunner",
    "SubprocessRunner",
    "AdmissionGate",
    "RunnerConfig",
    "parse_table",
    "parse_details",
    "map_rows",
    "CommandIntent",
    "ExecutionResult",
    "HealthStatus",
    "OperationKind",
    "OperationOutcome",
    "PackageDetails",
    "PackageRecord",
    "PackageSource",
    "ParseStage",
    "RawRow",
    "ReasonCode",
    "ValidationContext",
    "ValidationVerdict",
    "SafeWingetError",
    "ConfigurationError",
    "ValidationError",
    "UnknownParameter",
    "ExecutionError",
    "ProcessSpawnFailure",
    "ExecutionTimeout",
    "ExecutionCancelled",
    "ProcessCleanupError",
    "CommandFailed",
    "ParseFailure",
]
