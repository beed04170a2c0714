"""
Input validation for untrusted strings.

Every value that may end up on a winget command line passes through here
first. Validation never raises: it returns a :class:`ValidationVerdict`
naming the rule that rejected the value, never the matched text.
"""

from __future__ import annotations

import html
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping
from urllib.parse import unquote

from safewinget._types import ReasonCode, ValidationContext, ValidationVerdict

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 260


@dataclass(frozen=True)
class DenyRule:
    """A named pattern that rejects a value in any context."""

    name: str
    pattern: re.Pattern[str]
    description: str

    def matches(self, value: str) -> bool:
        return self.pattern.search(value) is not None


def _rule(name: str, pattern: str, description: str) -> DenyRule:
    return DenyRule(name, re.compile(pattern, re.IGNORECASE), description)


_LOLBINS = (
    r"(?:cmd|powershell|pwsh|wscript|cscript|mshta|rundll32|regsvr32|certutil|bitsadmin|wmic|schtasks|msiexec)"
)

# Checked in order; the first rule that matches is reported.
DENY_RULES: tuple[DenyRule, ...] = (
    _rule(
        "control-character",
        r"[\x00-\x1f\x7f]",
        "Control characters or line breaks",
    ),
    _rule(
        "shell-metacharacter",
        r"[;&|><$`(){}\\\"']",
        "Shell metacharacter",
    ),
    _rule(
        "path-traversal",
        r"(?:\.|%2e){2}(?:/|\\|%2f|%5c|%c0%af|%c1%9c|%25(?:2f|5c))",
        "Directory traversal sequence",
    ),
    _rule(
        "script-injection",
        r"<\s*/?\s*script|(?:java|vb)script\s*:|\bon[a-z]+\s*=|<!--\s*#|<!\s*(?:entity|doctype)|<\?xml|<!\[cdata\[",
        "Markup or script injection",
    ),
    _rule(
        "template-delimiter",
        r"\{\{|\}\}|\$\{|#\{|%\{|<%|%>|\[%|%\]",
        "Template engine delimiter",
    ),
    _rule(
        "encoded-markup",
        r"%3c|%3e|&#0*6[02];?|&#x0*3[ce];?|&lt;|&gt;|\\u003[ce]|\\x3[ce]",
        "Encoded markup character",
    ),
    _rule(
        "code-evaluation",
        r"\b(?:exec|eval|system|shell|spawn|popen|invoke-expression|iex)\s*\(",
        "Code evaluation call",
    ),
    _rule(
        "interpreter-invocation",
        r"\b(?:cmd|command|powershell|pwsh|bash|sh|zsh|python[0-9.]*|py|perl|ruby|node|wscript|cscript|mshta)(?:\.exe)?\s+[-/]",
        "Interpreter invocation with switches",
    ),
    _rule(
        "lolbin-executable",
        # Only as a command: followed by an argument, or reached through a path.
        rf"\b{_LOLBINS}\.exe\s|[\\/:]{_LOLBINS}\.exe\b",
        "System binary invoked with arguments or by path",
    ),
)

_RESERVED_WINDOWS_NAMES = r"(?:con|prn|aux|nul|com[1-9]|lpt[1-9])"
_BLOCKED_EXTENSIONS = r"(?:exe|bat|cmd|com|pif|scr|vbs|js|ps1)"

DEFAULT_ALLOW_PATTERNS: Mapping[ValidationContext, re.Pattern[str]] = MappingProxyType(
    {
        ValidationContext.PACKAGE_IDENTIFIER: re.compile(r"^[A-Za-z0-9._-]+$"),
        ValidationContext.SEARCH_TERM: re.compile(r"^[\w .+#@-]+$"),
        ValidationContext.SOURCE_NAME: re.compile(r"^[A-Za-z][A-Za-z0-9._-]{0,63}$"),
        ValidationContext.FILE_PATH_SEGMENT: re.compile(
            rf"^(?!\.{{1,2}}$)(?!{_RESERVED_WINDOWS_NAMES}(?:\.|$))(?!.*\.{_BLOCKED_EXTENSIONS}$)[\w .-]+$",
            re.IGNORECASE,
        ),
        ValidationContext.GENERIC_ARGUMENT: re.compile(r"^[\w .:+@,=-]+$"),
    }
)


def decode_once(value: str) -> str:
    """
    Undo one layer of percent and HTML-entity encoding, then NFKC-normalise.

    NFKC folds full-width and compatibility forms (``．．／``) onto ASCII.
    """
    decoded = unquote(value, errors="replace")
    decoded = html.unescape(decoded)
    return unicodedata.normalize("NFKC", decoded)


@dataclass(frozen=True)
class InputValidator:
    """
    Classifies strings as safe or unsafe for a given :class:`ValidationContext`.

    The default instance uses :data:`DENY_RULES` and
    :data:`DEFAULT_ALLOW_PATTERNS`; tests and stricter deployments can supply
    their own rule sets.

    Example:
        >>> InputValidator().validate("Git.Git", ValidationContext.PACKAGE_IDENTIFIER).accepted
        True
        >>> InputValidator().validate("git; rm", ValidationContext.SEARCH_TERM).rule
        'shell-metacharacter'
    """

    rules: tuple[DenyRule, ...] = DENY_RULES
    allow_patterns: Mapping[ValidationContext, re.Pattern[str]] = field(
        default_factory=lambda: DEFAULT_ALLOW_PATTERNS, compare=False
    )
    max_length: int = MAX_INPUT_LENGTH

    def first_match(self, value: str) -> DenyRule | None:
        """Return the first deny rule matching ``value``, or None."""
        for rule in self.rules:
            if rule.matches(value):
                return rule
        return None

    def validate(self, value: str, context: ValidationContext) -> ValidationVerdict:
        """
        Validate ``value`` for use as ``context``.

        Checks, in order: emptiness, length, deny rules on the raw value,
        deny rules on the once-decoded value, then the context's allow pattern.
        """
        if not isinstance(value, str):
            return ValidationVerdict.reject(ReasonCode.CONTEXT_MISMATCH)

        stripped = value.strip()
        if not stripped:
            return ValidationVerdict.reject(ReasonCode.EMPTY_INPUT)

        if len(value) > self.max_length:
            return self._rejected(ReasonCode.LENGTH_EXCEEDED, context)

        rule = self.first_match(value)
        if rule is not None:
            return self._rejected(ReasonCode.DANGEROUS_PATTERN, context, rule.name)

        decoded = decode_once(value)
        if decoded != value:
            rule = self.first_match(decoded)
            if rule is not None:
                return self._rejected(ReasonCode.DANGEROUS_PATTERN, context, f"decoded:{rule.name}")

        allow = self.allow_patterns.get(context)
        if allow is None or not allow.match(stripped):
            return self._rejected(ReasonCode.CONTEXT_MISMATCH, context)

        return ValidationVerdict.accept(stripped)

    def _rejected(
        self,
        reason: ReasonCode,
        context: ValidationContext,
        rule: str | None = None,
    ) -> ValidationVerdict:
        logger.debug(f"Rejected {context.value} input: {reason.value} ({rule or '-'})")
        return ValidationVerdict.reject(reason, rule)


_default_validator = InputValidator()


def validate(value: str, context: ValidationContext) -> ValidationVerdict:
    """Validate ``value`` with the default rule set."""
    return _default_validator.validate(value, context)
