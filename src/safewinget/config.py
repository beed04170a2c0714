"""
Runner configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from safewinget.errors import ConfigurationError

DEFAULT_COMMAND: tuple[str, ...] = ("winget",)


@dataclass(frozen=True)
class RunnerConfig:
    """
    How the external package manager is launched.

    Attributes:
        command: Executable plus fixed leading arguments. Never caller supplied.
        timeout: Default wall-clock budget per execution, in seconds.
        kill_grace: How long to wait for the OS after each termination signal.
        max_concurrency: Ceiling on simultaneously running external processes.
        max_output_bytes: Per-stream capture bound; excess output is discarded.
        env: Environment for the child. ``None`` inherits the parent's.
        cwd: Working directory for the child.
    """

    command: tuple[str, ...] = DEFAULT_COMMAND
    timeout: float = 120.0
    kill_grace: float = 2.0
    max_concurrency: int = 2
    max_output_bytes: int = 1_048_576
    env: Mapping[str, str] | None = field(default=None, compare=False)
    cwd: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.command, str):
            object.__setattr__(self, "command", (self.command,))
        else:
            object.__setattr__(self, "command", tuple(self.command))
        if not self.command or not all(self.command):
            raise ConfigurationError("command must name an executable")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.kill_grace <= 0:
            raise ConfigurationError("kill_grace must be positive")
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")
        if self.max_output_bytes < 1024:
            raise ConfigurationError("max_output_bytes must be at least 1024")

    @property
    def executable(self) -> str:
        return self.command[0]

    @classmethod
    def from_env(
        cls,
        prefix: str = "SAFEWINGET_",
        environ: Mapping[str, str] | None = None,
    ) -> RunnerConfig:
        """
        Build a config from environment overrides.

        Recognised variables (with the default prefix): ``SAFEWINGET_EXECUTABLE``,
        ``SAFEWINGET_TIMEOUT``, ``SAFEWINGET_KILL_GRACE``,
        ``SAFEWINGET_MAX_CONCURRENCY``, ``SAFEWINGET_MAX_OUTPUT_BYTES``.
        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        converters = {
            "TIMEOUT": ("timeout", float),
            "KILL_GRACE": ("kill_grace", float),
            "MAX_CONCURRENCY": ("max_concurrency", int),
            "MAX_OUTPUT_BYTES": ("max_output_bytes", int),
        }
        for suffix, (name, convert) in converters.items():
            raw = environ.get(prefix + suffix)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[name] = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"{prefix}{suffix} is not a valid number") from e

        executable = environ.get(prefix + "EXECUTABLE")
        if executable and executable.strip():
            overrides["command"] = (executable.strip(),)

        return cls(**overrides)  # type: ignore[arg-type]
