"""Tests for InputValidator and the deny rules."""

from __future__ import annotations

import re

import pytest
from hypothesis import given
from hypothesis import strategies as st

from safewinget import InputValidator, ReasonCode, ValidationContext, validate
from safewinget.security.validator import DENY_RULES, MAX_INPUT_LENGTH, DenyRule, decode_once

RULE_NAMES = {rule.name for rule in DENY_RULES}
ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789._-"

DANGEROUS_TOKENS = [
    ";",
    "&&",
    "|",
    "`whoami`",
    "$(id)",
    "> out.txt",
    "../",
    "..\\",
    "..%2f",
    "%2e%2e%2f",
    "%2e%2e%5c",
    "<script>",
    "javascript:alert",
    "onerror=alert",
    "{{7*7}}",
    "${jndi}",
    "<%= x %>",
    "%3cscript%3e",
    "&#60;script&#62;",
    "&lt;script&gt;",
    "eval(",
    "exec(",
    "system(",
    "cmd /c",
    "bash -c",
    "powershell -Command",
    "python -c",
    "cmd.exe",
    "certutil.exe",
    "\x00",
    "\n",
]


# ============================================================
# Strategies
# ============================================================


@st.composite
def package_identifiers(draw):
    """Strings matching ^[A-Za-z0-9._-]{1,260}$"""
    return draw(st.text(alphabet=ID_ALPHABET, min_size=1, max_size=MAX_INPUT_LENGTH))


@st.composite
def padded_tokens(draw):
    """A dangerous token surrounded by harmless words."""
    words = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", max_size=20)
    return f"{draw(words)} {draw(st.sampled_from(DANGEROUS_TOKENS))} {draw(words)}"


# ============================================================
# Properties
# ============================================================


class TestValidatorProperties:
    """Invariants that must hold for all inputs."""

    @given(package_identifiers())
    def test_valid_identifiers_are_accepted(self, value: str) -> None:
        """Every well-formed package id passes as PACKAGE_IDENTIFIER."""
        verdict = validate(value, ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.accepted
        assert verdict.sanitized_value == value

    @given(padded_tokens(), st.sampled_from(list(ValidationContext)))
    def test_dangerous_tokens_rejected_in_every_context(
        self, value: str, context: ValidationContext
    ) -> None:
        """A dangerous token anywhere in the value is rejected regardless of context."""
        verdict = validate(value, context)
        assert not verdict.accepted
        assert verdict.reason_code is ReasonCode.DANGEROUS_PATTERN

    @given(st.text(max_size=300), st.sampled_from(list(ValidationContext)))
    def test_never_raises_and_never_leaks_input(self, value: str, context: ValidationContext) -> None:
        """validate() always returns a verdict whose rule is a known rule name."""
        verdict = validate(value, context)
        if verdict.accepted:
            assert verdict.reason_code is ReasonCode.ACCEPTED
            assert verdict.sanitized_value == value.strip()
        else:
            assert verdict.sanitized_value is None
            if verdict.rule is not None:
                assert verdict.rule.removeprefix("decoded:") in RULE_NAMES


# ============================================================
# Examples
# ============================================================


class TestDenyRules:
    """Tests for individual named rules."""

    @pytest.mark.parametrize(
        ("value", "rule"),
        [
            ("git; rm", "shell-metacharacter"),
            ("git | more", "shell-metacharacter"),
            ("\x1b[31m", "control-character"),
            ("..%2f..%2fwindows", "path-traversal"),
            ("%c0%af", None),
            ("javascript:alert(1)", "shell-metacharacter"),
            ("javascript:void", "script-injection"),
            ("[% INCLUDE x %]", "template-delimiter"),
            ("%3Cimg", "encoded-markup"),
            ("system (x)", "shell-metacharacter"),
            ("cmd /c dir", "interpreter-invocation"),
            ("powershell.exe -enc AAAA", "interpreter-invocation"),
            ("certutil.exe urlcache", "lolbin-executable"),
            ("C:/Windows/System32/mshta.exe", "lolbin-executable"),
        ],
    )
    def test_rule_names(self, value: str, rule: str | None) -> None:
        """Rejections name the first rule that fired."""
        verdict = validate(value, ValidationContext.GENERIC_ARGUMENT)
        if rule is None:
            assert not verdict.accepted
        else:
            assert verdict.reason_code is ReasonCode.DANGEROUS_PATTERN
            assert verdict.rule == rule

    @pytest.mark.parametrize("value", ["cmd.exe", "Contoso.cmd.exe.Tools", "Vendor.certutil.exe"])
    def test_binary_names_inside_ids_are_accepted(self, value: str) -> None:
        """A system binary name is only refused when used as a command."""
        assert validate(value, ValidationContext.PACKAGE_IDENTIFIER).accepted

    def test_rule_reports_name_not_text(self) -> None:
        """The verdict carries the rule name, never the matched substring."""
        verdict = validate("Git.Git; del secret", ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.rule == "shell-metacharacter"
        assert "secret" not in repr(verdict)

    def test_rules_are_ordered_and_unique(self) -> None:
        names = [rule.name for rule in DENY_RULES]
        assert len(names) == len(set(names))
        assert names[0] == "control-character"

    def test_custom_rules(self) -> None:
        """Deployments can supply their own rule list."""
        validator = InputValidator(
            rules=(DenyRule("no-beta", re.compile(r"beta", re.IGNORECASE), "Beta channels"),)
        )
        verdict = validator.validate("Mozilla.Firefox.Beta", ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.rule == "no-beta"
        assert validator.validate("Mozilla.Firefox", ValidationContext.PACKAGE_IDENTIFIER)


class TestDecoding:
    """Encoded payloads are decoded once and re-scanned."""

    def test_percent_encoded_metacharacter(self) -> None:
        verdict = validate("%3Bid", ValidationContext.GENERIC_ARGUMENT)
        assert verdict.reason_code is ReasonCode.DANGEROUS_PATTERN
        assert verdict.rule == "decoded:shell-metacharacter"

    def test_html_entity_is_decoded(self) -> None:
        assert decode_once("&#x3b;ls") == ";ls"
        verdict = validate("&#x3b;ls", ValidationContext.GENERIC_ARGUMENT)
        assert verdict.reason_code is ReasonCode.DANGEROUS_PATTERN

    def test_fullwidth_traversal(self) -> None:
        """NFKC folds full-width dots and slashes before the re-scan."""
        verdict = validate("．．／windows", ValidationContext.FILE_PATH_SEGMENT)
        assert verdict.rule == "decoded:path-traversal"

    def test_decode_once_is_single_layer(self) -> None:
        assert decode_once("%253B") == "%3B"
        assert decode_once("&amp;lt;") == "&lt;"


class TestContexts:
    """Tests for the per-context allow patterns."""

    def test_package_identifier(self) -> None:
        assert validate("Microsoft.VisualStudioCode", ValidationContext.PACKAGE_IDENTIFIER)
        verdict = validate("Visual Studio Code", ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.reason_code is ReasonCode.CONTEXT_MISMATCH
        assert verdict.rule is None

    @pytest.mark.parametrize("term", ["visual studio code", "c++", "C#", "node.js", "7-zip"])
    def test_search_terms(self, term: str) -> None:
        assert validate(term, ValidationContext.SEARCH_TERM).accepted

    def test_source_name(self) -> None:
        assert validate("msstore", ValidationContext.SOURCE_NAME)
        assert not validate("1source", ValidationContext.SOURCE_NAME)

    @pytest.mark.parametrize("segment", ["setup.exe", "run.PS1", "CON", "nul.txt", "..", "."])
    def test_file_path_segment_rejects_unsafe_names(self, segment: str) -> None:
        verdict = validate(segment, ValidationContext.FILE_PATH_SEGMENT)
        assert not verdict.accepted
        assert verdict.reason_code is ReasonCode.CONTEXT_MISMATCH

    def test_file_path_segment_accepts_plain_names(self) -> None:
        assert validate("winget-export.json", ValidationContext.FILE_PATH_SEGMENT)
        assert validate("console.log", ValidationContext.FILE_PATH_SEGMENT)


class TestBoundaries:
    """Tests for emptiness, length and type checks."""

    def test_empty(self) -> None:
        assert validate("", ValidationContext.SEARCH_TERM).reason_code is ReasonCode.EMPTY_INPUT
        assert validate("   ", ValidationContext.SEARCH_TERM).reason_code is ReasonCode.EMPTY_INPUT

    def test_length_bound(self) -> None:
        assert validate("a" * MAX_INPUT_LENGTH, ValidationContext.PACKAGE_IDENTIFIER)
        verdict = validate("a" * (MAX_INPUT_LENGTH + 1), ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.reason_code is ReasonCode.LENGTH_EXCEEDED

    def test_configurable_length(self) -> None:
        validator = InputValidator(max_length=10)
        verdict = validator.validate("a" * 11, ValidationContext.SEARCH_TERM)
        assert verdict.reason_code is ReasonCode.LENGTH_EXCEEDED

    def test_non_string(self) -> None:
        verdict = validate(42, ValidationContext.SEARCH_TERM)  # type: ignore[arg-type]
        assert verdict.reason_code is ReasonCode.CONTEXT_MISMATCH

    def test_surrounding_whitespace_is_stripped(self) -> None:
        verdict = validate("  Git.Git ", ValidationContext.PACKAGE_IDENTIFIER)
        assert verdict.sanitized_value == "Git.Git"
