"""
Command policy: which winget verbs and flags may be used, and how their
values are validated.

This is the gate between caller-supplied arguments and process creation.
Anything not explicitly listed for an operation is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple, Union

from safewinget._types import CommandIntent, OperationKind, ReasonCode, ValidationContext
from safewinget.errors import ConfigurationError, UnknownParameter, ValidationError
from safewinget.security.validator import InputValidator

logger = logging.getLogger(__name__)

# A flag token on its own, or a value paired with the context the caller declares for it.
Argument = Union[str, Tuple[str, ValidationContext]]


@dataclass(frozen=True)
class FlagSpec:
    """
    One permitted flag (or positional slot).

    A flag with ``context=None`` is a switch and takes no value.
    """

    name: str
    context: ValidationContext | None = None
    choices: frozenset[str] | None = None
    int_range: tuple[int, int] | None = None
    repeatable: bool = False

    def __post_init__(self) -> None:
        if not self.takes_value and (self.choices is not None or self.int_range is not None):
            raise ConfigurationError(f"switch {self.name!r} cannot restrict its value")

    @property
    def takes_value(self) -> bool:
        return self.context is not None


@dataclass(frozen=True)
class OperationSpec:
    """Flags (and at most one positional argument) allowed for one verb."""

    flags: Mapping[str, FlagSpec] = field(default_factory=dict, compare=False)
    positional: FlagSpec | None = None

    def __post_init__(self) -> None:
        if self.positional is not None and not self.positional.takes_value:
            raise ConfigurationError(f"positional {self.positional.name!r} needs a validation context")

    @classmethod
    def of(cls, *flags: FlagSpec, positional: FlagSpec | None = None) -> OperationSpec:
        return cls(
            flags=MappingProxyType({f.name.lower(): f for f in flags}),
            positional=positional,
        )

    def __contains__(self, flag: str) -> bool:
        return flag.lower() in self.flags


_ID = FlagSpec("--id", ValidationContext.PACKAGE_IDENTIFIER)
_SOURCE = FlagSpec("--source", ValidationContext.SOURCE_NAME, choices=frozenset({"winget", "msstore"}))
_COUNT = FlagSpec("--count", ValidationContext.GENERIC_ARGUMENT, int_range=(1, 1000))
_QUERY = FlagSpec("-q", ValidationContext.SEARCH_TERM)
_NAME = FlagSpec("--name", ValidationContext.SOURCE_NAME)
_EXACT = FlagSpec("--exact")
_SILENT = FlagSpec("--silent")
_ALL = FlagSpec("--all")
_ACCEPT_SOURCE = FlagSpec("--accept-source-agreements")
_ACCEPT_PACKAGE = FlagSpec("--accept-package-agreements")
_VERBOSE = FlagSpec("--verbose")


def _standard_operations() -> dict[OperationKind, OperationSpec]:
    return {
        OperationKind.LIST: OperationSpec.of(
            _ID, _QUERY, _SOURCE, _EXACT, _COUNT, _ACCEPT_SOURCE, _VERBOSE
        ),
        OperationKind.UPGRADE: OperationSpec.of(
            _ID, _SOURCE, _SILENT, _ALL, _EXACT, _ACCEPT_SOURCE, _ACCEPT_PACKAGE, _VERBOSE
        ),
        OperationKind.INSTALL: OperationSpec.of(
            replace(_ID, repeatable=True),
            _SOURCE,
            _SILENT,
            _EXACT,
            _ACCEPT_SOURCE,
            _ACCEPT_PACKAGE,
            _VERBOSE,
        ),
        OperationKind.UNINSTALL: OperationSpec.of(
            _ID, _SOURCE, _SILENT, _EXACT, _ACCEPT_SOURCE, _VERBOSE
        ),
        OperationKind.REPAIR: OperationSpec.of(
            _ID, _SOURCE, _SILENT, _ACCEPT_SOURCE, _ACCEPT_PACKAGE, _VERBOSE
        ),
        OperationKind.SEARCH: OperationSpec.of(_QUERY, _SOURCE, _COUNT),
        OperationKind.SHOW: OperationSpec.of(_ID, _SOURCE, _EXACT, _ACCEPT_SOURCE, _VERBOSE),
        OperationKind.SOURCE: OperationSpec.of(
            _NAME,
            positional=FlagSpec(
                "subcommand",
                ValidationContext.GENERIC_ARGUMENT,
                choices=frozenset({"list", "update"}),
            ),
        ),
    }


READ_ONLY_OPERATIONS = frozenset(
    {OperationKind.LIST, OperationKind.SEARCH, OperationKind.SHOW, OperationKind.SOURCE}
)


@dataclass(frozen=True)
class CommandPolicy:
    """
    Immutable table of permitted operations, passed explicitly to whoever
    builds command lines.

    Provides two stock tables:
    - ``standard()``: every supported verb.
    - ``read_only()``: only verbs that do not change installed software.

    Example:
        >>> policy = CommandPolicy.standard()
        >>> intent = policy.build_intent(
        ...     OperationKind.SEARCH,
        ...     ["-q", ("vscode", ValidationContext.SEARCH_TERM)],
        ... )
        >>> intent.argv
        ('search', '-q', 'vscode')
    """

    operations: Mapping[OperationKind, OperationSpec] = field(compare=False)
    validator: InputValidator = field(default_factory=InputValidator, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "operations", MappingProxyType(dict(self.operations)))

    @classmethod
    def standard(cls, validator: InputValidator | None = None) -> CommandPolicy:
        """Create the standard policy covering all supported verbs."""
        return cls(_standard_operations(), validator or InputValidator())

    @classmethod
    def read_only(cls, validator: InputValidator | None = None) -> CommandPolicy:
        """Create a policy that cannot install, upgrade, remove or repair."""
        return cls.standard(validator).restrict(*READ_ONLY_OPERATIONS)

    def restrict(self, *operations: OperationKind) -> CommandPolicy:
        """Return a copy that only permits ``operations``."""
        keep = set(operations)
        return replace(self, operations={k: v for k, v in self.operations.items() if k in keep})

    def with_operation(self, operation: OperationKind, spec: OperationSpec) -> CommandPolicy:
        """Return a copy with ``operation`` permitted as described by ``spec``."""
        return replace(self, operations={**self.operations, operation: spec})

    def allows(self, operation: OperationKind, flag: str | None = None) -> bool:
        """Check whether ``operation`` (and optionally ``flag`` for it) is permitted."""
        spec = self.operations.get(operation)
        if spec is None:
            return False
        return flag is None or flag in spec

    def build_intent(self, operation: OperationKind, args: Iterable[Argument] = ()) -> CommandIntent:
        """
        Validate ``args`` for ``operation`` and assemble a :class:`CommandIntent`.

        Args:
            operation: The winget verb.
            args: Flag tokens as plain strings; values as ``(value, context)``
                pairs where ``context`` is what the caller says the value is.

        Returns:
            An intent whose ``arguments`` keep the caller's ordering, one token
            per element.

        Raises:
            UnknownParameter: A flag is not permitted for ``operation``.
            ValidationError: Any other rejected argument.
        """
        spec = self.operations.get(operation)
        if spec is None:
            self._log_rejection(operation, ReasonCode.UNKNOWN_OPERATION)
            raise ValidationError(ReasonCode.UNKNOWN_OPERATION, detail=f"operation {operation.value!r}")

        items = list(args)
        tokens: list[str] = []
        seen: set[str] = set()
        positional_used = False
        i = 0

        while i < len(items):
            token, declared = _split(items[i])
            i += 1

            if token.startswith("-"):
                flag = spec.flags.get(token.lower())
                if flag is None:
                    self._log_rejection(operation, ReasonCode.UNKNOWN_PARAMETER)
                    raise UnknownParameter(token, operation.value)
                if flag.name in seen and not flag.repeatable:
                    self._log_rejection(operation, ReasonCode.DUPLICATE_FLAG)
                    raise ValidationError(ReasonCode.DUPLICATE_FLAG, detail=f"flag {flag.name!r}")
                seen.add(flag.name)
                tokens.append(flag.name)

                if flag.takes_value:
                    if i >= len(items):
                        self._log_rejection(operation, ReasonCode.MISSING_VALUE)
                        raise ValidationError(
                            ReasonCode.MISSING_VALUE,
                            context=flag.context,
                            detail=f"flag {flag.name!r} needs a value",
                        )
                    value, declared = _split(items[i])
                    i += 1
                    tokens.append(self._check_value(operation, flag, value, declared))
                continue

            if spec.positional is None or positional_used:
                self._log_rejection(operation, ReasonCode.UNKNOWN_PARAMETER)
                raise UnknownParameter(token, operation.value)
            positional_used = True
            tokens.append(self._check_value(operation, spec.positional, token, declared))

        intent = CommandIntent(operation=operation, arguments=tuple(tokens))
        logger.debug(f"Built intent: {' '.join(intent.argv)}")
        return intent

    def _check_value(
        self,
        operation: OperationKind,
        flag: FlagSpec,
        value: str,
        declared: ValidationContext | None,
    ) -> str:
        context = flag.context
        if context is None:
            raise ConfigurationError(f"{flag.name!r} takes no value")

        if declared is not context:
            self._log_rejection(operation, ReasonCode.CONTEXT_MISMATCH)
            raise ValidationError(
                ReasonCode.CONTEXT_MISMATCH,
                context=context,
                detail=f"value for {flag.name!r} declared as {declared.value if declared else 'nothing'}",
            )

        verdict = self.validator.validate(value, context)
        if not verdict.accepted:
            self._log_rejection(operation, verdict.reason_code, verdict.rule)
            raise ValidationError(verdict.reason_code, rule=verdict.rule, context=context)

        clean = verdict.sanitized_value or ""
        if clean.startswith("-"):
            # Would be read as another flag by winget.
            self._log_rejection(operation, ReasonCode.CONTEXT_MISMATCH, "flag-injection")
            raise ValidationError(ReasonCode.CONTEXT_MISMATCH, rule="flag-injection", context=context)

        if flag.choices is not None:
            clean = clean.lower()
            if clean not in flag.choices:
                self._log_rejection(operation, ReasonCode.VALUE_NOT_ALLOWED)
                raise ValidationError(
                    ReasonCode.VALUE_NOT_ALLOWED,
                    context=context,
                    detail=f"{flag.name} accepts {', '.join(sorted(flag.choices))}",
                )

        if flag.int_range is not None:
            low, high = flag.int_range
            if not clean.isdigit() or not low <= int(clean) <= high:
                self._log_rejection(operation, ReasonCode.VALUE_NOT_ALLOWED)
                raise ValidationError(
                    ReasonCode.VALUE_NOT_ALLOWED,
                    context=context,
                    detail=f"{flag.name} accepts {low}-{high}",
                )
            clean = str(int(clean))

        return clean

    @staticmethod
    def _log_rejection(operation: OperationKind, reason: ReasonCode, rule: str | None = None) -> None:
        logger.warning(f"Blocked {operation.value} arguments: {reason.value} ({rule or '-'})")


def _split(item: Argument) -> tuple[str, ValidationContext | None]:
    if isinstance(item, str):
        return item, None
    try:
        value, context = item
    except (TypeError, ValueError):
        raise ValidationError(ReasonCode.CONTEXT_MISMATCH, detail="malformed argument") from None
    if not isinstance(value, str) or not isinstance(context, ValidationContext):
        raise ValidationError(ReasonCode.CONTEXT_MISMATCH, detail="malformed argument")
    return value, context
