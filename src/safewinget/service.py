"""
High-level package operations.

:class:`PackageService` wires the pipeline together: arguments go through the
command policy, the validated intent through the runner, and the output
through the parser and mapper. Each method is one winget invocation.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Sequence

from safewinget._types import (
    CommandIntent,
    ExecutionResult,
    HealthStatus,
    OperationKind,
    OperationOutcome,
    PackageDetails,
    PackageRecord,
    ParseStage,
    ReasonCode,
    ValidationContext,
)
from safewinget.config import RunnerConfig
from safewinget.errors import (
    CommandFailed,
    ConfigurationError,
    ExecutionTimeout,
    ParseFailure,
    ProcessCleanupError,
    ProcessSpawnFailure,
    ValidationError,
)
from safewinget.gate import AdmissionGate
from safewinget.parsing import clean_output, map_rows, parse_details, parse_table
from safewinget.runner import ProcessRunner, SubprocessRunner
from safewinget.security.policy import Argument, CommandPolicy

logger = logging.getLogger(__name__)

# winget's wording when a query legitimately matches nothing.
NO_RESULTS = re.compile(
    r"^\s*(?:No (?:installed )?package found matching input criteria"
    r"|No applicable (?:update|upgrade) found"
    r"|No newer package versions are available)",
    re.IGNORECASE | re.MULTILINE,
)

_ALL_SOURCES = "all"
_NON_INTERACTIVE = ("--accept-source-agreements",)
_UNATTENDED = ("--silent", "--accept-source-agreements", "--accept-package-agreements")


def _source_args(source: str | None) -> list[Argument]:
    if source is None or source.strip().lower() == _ALL_SOURCES:
        return []
    return ["--source", (source, ValidationContext.SOURCE_NAME)]


def _source_hint(source: str | None) -> str | None:
    if source is None or source.strip().lower() == _ALL_SOURCES:
        return None
    return source


def _verbose_args(verbose: bool) -> list[Argument]:
    return ["--verbose"] if verbose else []


class PackageService:
    """
    Safe facade over the winget command line.

    Example:
        >>> async with PackageService() as winget:
        ...     for record in await winget.check_updates():
        ...         print(record)
    """

    def __init__(
        self,
        policy: CommandPolicy | None = None,
        runner: ProcessRunner | None = None,
        config: RunnerConfig | None = None,
        *,
        gate: AdmissionGate | None = None,
    ) -> None:
        """
        Initialize a service.

        Args:
            policy: Which operations and flags are permitted. Defaults to
                ``CommandPolicy.standard()``.
            runner: How winget is launched. Defaults to a
                :class:`SubprocessRunner` built from ``config`` and ``gate``.
            config: Launch settings for the default runner.
            gate: Admission gate for the default runner, shared with other
                collaborators that launch processes.
        """
        if runner is not None and (config is not None or gate is not None):
            raise ConfigurationError("config and gate apply to the default runner only")
        self._policy = policy or CommandPolicy.standard()
        self._runner = runner or SubprocessRunner(config or RunnerConfig(), gate=gate)
        self._closed = False

    @property
    def policy(self) -> CommandPolicy:
        return self._policy

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    # Read operations

    async def list_installed(
        self,
        source: str | None = None,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[PackageRecord]:
        """List installed packages, optionally limited to one source."""
        intent = self._policy.build_intent(
            OperationKind.LIST, [*_source_args(source), *_NON_INTERACTIVE, *_verbose_args(verbose)]
        )
        return await self._read(intent, _source_hint(source), timeout=timeout, cancel=cancel)

    async def check_updates(
        self,
        source: str | None = None,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[PackageRecord]:
        """List installed packages that have a newer version available."""
        intent = self._policy.build_intent(
            OperationKind.UPGRADE, [*_source_args(source), *_NON_INTERACTIVE, *_verbose_args(verbose)]
        )
        return await self._read(intent, _source_hint(source), timeout=timeout, cancel=cancel)

    async def search(
        self,
        query: str,
        source: str | None = None,
        count: int | None = None,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[PackageRecord]:
        """
        Search the catalogue.

        Args:
            query: Search term. Letters, digits, spaces and ``.+#@-_`` only.
            source: ``winget``, ``msstore``, or ``all``/None for every source.
            count: Maximum results, 1-1000.

        Returns:
            Matching packages; an empty list when winget reports no match.
        """
        args: list[Argument] = ["-q", (query, ValidationContext.SEARCH_TERM), *_source_args(source)]
        if count is not None:
            args += ["--count", (str(count), ValidationContext.GENERIC_ARGUMENT)]
        intent = self._policy.build_intent(OperationKind.SEARCH, args)
        return await self._read(intent, _source_hint(source), timeout=timeout, cancel=cancel)

    async def show(
        self,
        package_id: str,
        source: str | None = None,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PackageDetails:
        """Fetch catalogue details for one package id."""
        intent = self._policy.build_intent(
            OperationKind.SHOW,
            [
                "--id",
                (package_id, ValidationContext.PACKAGE_IDENTIFIER),
                "--exact",
                *_source_args(source),
                *_NON_INTERACTIVE,
                *_verbose_args(verbose),
            ],
        )
        result = await self._execute(intent, timeout=timeout, cancel=cancel)
        try:
            return parse_details(result.stdout)
        except ParseFailure as e:
            if not result.success:
                raise CommandFailed(result) from e
            raise

    # Mutating operations

    async def install(
        self,
        package_ids: Sequence[str] | str,
        source: str | None = None,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        """Install one or more packages by exact id."""
        ids = [package_ids] if isinstance(package_ids, str) else list(package_ids)
        if not ids:
            raise ValidationError(ReasonCode.EMPTY_INPUT, detail="no package ids given")

        args: list[Argument] = []
        for package_id in ids:
            args += ["--id", (package_id, ValidationContext.PACKAGE_IDENTIFIER)]
        args += ["--exact", *_source_args(source), *_UNATTENDED, *_verbose_args(verbose)]

        intent = self._policy.build_intent(OperationKind.INSTALL, args)
        return await self._mutate(intent, ids, timeout=timeout, cancel=cancel)

    async def upgrade(
        self,
        package_id: str,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        """Upgrade one package to the latest version."""
        intent = self._policy.build_intent(
            OperationKind.UPGRADE,
            [
                "--id",
                (package_id, ValidationContext.PACKAGE_IDENTIFIER),
                "--exact",
                *_UNATTENDED,
                *_verbose_args(verbose),
            ],
        )
        return await self._mutate(intent, [package_id], timeout=timeout, cancel=cancel)

    async def upgrade_all(
        self,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        """Upgrade every package that has an update."""
        intent = self._policy.build_intent(
            OperationKind.UPGRADE, ["--all", *_UNATTENDED, *_verbose_args(verbose)]
        )
        return await self._mutate(intent, [], timeout=timeout, cancel=cancel)

    async def uninstall(
        self,
        package_id: str,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        intent = self._policy.build_intent(
            OperationKind.UNINSTALL,
            [
                "--id",
                (package_id, ValidationContext.PACKAGE_IDENTIFIER),
                "--exact",
                "--silent",
                *_NON_INTERACTIVE,
                *_verbose_args(verbose),
            ],
        )
        return await self._mutate(intent, [package_id], timeout=timeout, cancel=cancel)

    async def repair(
        self,
        package_id: str,
        *,
        verbose: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        intent = self._policy.build_intent(
            OperationKind.REPAIR,
            [
                "--id",
                (package_id, ValidationContext.PACKAGE_IDENTIFIER),
                *_UNATTENDED,
                *_verbose_args(verbose),
            ],
        )
        return await self._mutate(intent, [package_id], timeout=timeout, cancel=cancel)

    async def update_sources(
        self,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> OperationOutcome:
        """Refresh the source catalogues."""
        intent = self._policy.build_intent(
            OperationKind.SOURCE, [("update", ValidationContext.GENERIC_ARGUMENT)]
        )
        return await self._mutate(intent, [], timeout=timeout, cancel=cancel)

    # Health

    async def check_health(
        self,
        *,
        timeout: float = 10.0,
        cancel: asyncio.Event | None = None,
    ) -> HealthStatus:
        """
        Check that winget can be launched.

        A missing, hung or unkillable binary is reported in the status
        rather than raised.

        Raises:
            ExecutionCancelled: ``cancel`` was set before or during the check.
        """
        self._check_open()
        try:
            result = await self._runner.check_version(timeout=timeout, cancel=cancel)
        except ProcessSpawnFailure as e:
            logger.warning(f"winget unavailable: {e.reason}")
            return HealthStatus(available=False, detail=e.reason)
        except ProcessCleanupError as e:
            logger.warning(f"winget version check left a process behind: {e}")
            return HealthStatus(available=False, detail="process could not be stopped")

        if result.timed_out:
            return HealthStatus(available=False, detail=f"no response within {timeout}s")
        if not result.success:
            return HealthStatus(available=False, detail=f"exit code {result.exit_code}")

        lines = clean_output(result.stdout).split("\n")
        version = lines[-1].strip() or None
        return HealthStatus(available=True, version=version)

    # Plumbing

    async def _execute(
        self,
        intent: CommandIntent,
        *,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> ExecutionResult:
        self._check_open()
        result = await self._runner.execute(intent, timeout=timeout, cancel=cancel)
        if result.timed_out:
            budget = timeout if timeout is not None else self._runner.default_timeout
            raise ExecutionTimeout(result, budget)
        return result

    async def _read(
        self,
        intent: CommandIntent,
        source_hint: str | None,
        *,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> list[PackageRecord]:
        result = await self._execute(intent, timeout=timeout, cancel=cancel)
        output = clean_output(result.stdout)
        try:
            rows = parse_table(output)
        except ParseFailure as e:
            if e.stage is ParseStage.HEADER_NOT_FOUND and NO_RESULTS.search(output):
                logger.debug(f"winget {intent.operation.value}: no matching packages")
                return []
            if not result.success:
                raise CommandFailed(result) from e
            raise

        records = map_rows(rows, intent.operation, source_hint)
        logger.debug(f"winget {intent.operation.value}: {len(records)} packages")
        return records

    async def _mutate(
        self,
        intent: CommandIntent,
        package_ids: Sequence[str],
        *,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> OperationOutcome:
        result = await self._execute(intent, timeout=timeout, cancel=cancel)
        outcome = OperationOutcome(
            operation=intent.operation,
            package_ids=tuple(package_ids),
            exit_code=result.exit_code,
            output=clean_output(result.stdout),
        )
        if outcome.succeeded:
            logger.info(f"winget {intent.operation.value} succeeded")
        else:
            logger.warning(f"winget {intent.operation.value} exited {result.exit_code}")
        return outcome

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("PackageService has been closed")

    async def close(self) -> None:
        """Close the runner. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        await self._runner.close()

    async def __aenter__(self) -> PackageService:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
