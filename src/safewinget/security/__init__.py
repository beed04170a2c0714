"""Input validation and command policy for safewinget."""

from safewinget.security.policy import (
    READ_ONLY_OPERATIONS,
    CommandPolicy,
    FlagSpec,
    OperationSpec,
)
from safewinget.security.validator import (
    DENY_RULES,
    DenyRule,
    InputValidator,
    validate,
)

__all__ = [
    "DENY_RULES",
    "READ_ONLY_OPERATIONS",
    "CommandPolicy",
    "DenyRule",
    "FlagSpec",
    "InputValidator",
    "OperationSpec",
    "validate",
]
