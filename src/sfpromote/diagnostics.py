# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Ordered rule table that extracts missing artifacts from validation diagnostics.

Rules are evaluated top to bottom and the first match wins. The order is part
of the contract: more specific wordings sit above the generic ``not found``
variants so that classification stays stable when several rules could match.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from .constants import NESTED_PARENT_TYPE
from .models import ArtifactRef

Extractor = Callable[[re.Match[str]], str | None]

_NAME_TRAILING: Final[str] = ".,;:"
_CUSTOM_SUFFIX: Final[str] = "__c"
_NAMED: Final[str] = r"(?:'(?P<quoted>[^']+)'|\"(?P<dquoted>[^\"]+)\"|(?P<bare>[\w.\-/]+))"


@dataclass(frozen=True, slots=True)
class DiagnosticRule:
    """Pattern plus extractors inferring the artifact a diagnostic refers to."""

    name: str
    pattern: re.Pattern[str]
    type_extractor: Extractor
    name_extractor: Extractor

    def apply(self, text: str) -> ArtifactRef | None:
        """Return the artifact inferred from ``text`` or ``None`` when the rule does not apply."""

        match = self.pattern.search(text)
        if match is None:
            return None
        type_name = self.type_extractor(match)
        member = self.name_extractor(match)
        if not type_name or not member:
            return None
        return ArtifactRef(type_name, member)


@dataclass(frozen=True, slots=True)
class DiagnosticMatch:
    """A diagnostic line together with the rule that recognised it."""

    text: str
    rule: str
    ref: ArtifactRef


def _group(name: str) -> Extractor:
    def extract(match: re.Match[str]) -> str | None:
        value = match.group(name)
        return value.strip().rstrip(_NAME_TRAILING) if value else None

    return extract


def _constant(value: str) -> Extractor:
    def extract(_match: re.Match[str]) -> str | None:
        return value

    return extract


def _named(match: re.Match[str]) -> str | None:
    for key in ("quoted", "dquoted", "bare"):
        value = match.groupdict().get(key)
        if value:
            return value.strip().rstrip(_NAME_TRAILING)
    return None


def _field_name(match: re.Match[str]) -> str | None:
    field = match.group("field").rsplit(".", 1)[-1]
    return f"{match.group('object')}.{field}"


def _invalid_type(match: re.Match[str]) -> str | None:
    return NESTED_PARENT_TYPE if match.group("name").endswith(_CUSTOM_SUFFIX) else "ApexClass"


def _rule(name: str, pattern: str, type_extractor: Extractor, name_extractor: Extractor) -> DiagnosticRule:
    return DiagnosticRule(
        name=name,
        pattern=re.compile(pattern, re.IGNORECASE),
        type_extractor=type_extractor,
        name_extractor=name_extractor,
    )


def _not_found_rule(label: str, type_name: str) -> DiagnosticRule:
    pattern = rf"\b{label}\b(?:\s+named)?\s+{_NAMED}\s+(?:was\s+)?(?:not\s+found|does\s+not\s+exist)"
    return _rule(f"{type_name.lower()}-not-found", pattern, _constant(type_name), _named)


DEFAULT_RULES: Final[tuple[DiagnosticRule, ...]] = (
    _rule(
        "missing-from-package",
        r"An object '(?P<name>[^']+)' of type (?P<type>\w+) was named in package\.xml, but was not found",
        _group("type"),
        _group("name"),
    ),
    _rule(
        "missing-companion-metadata",
        rf"(?P<type>(?-i:[A-Z])\w+)\s+{_NAMED}\s+is\s+missing\s+its\s+companion\s+(?:-meta\.xml\s+file|metadata)",
        _group("type"),
        _named,
    ),
    _rule(
        "application-not-found",
        r"no CustomApplication named (?P<name>\S+) found",
        _constant("CustomApplication"),
        _group("name"),
    ),
    _rule(
        "unknown-user-permission",
        r"Unknown user permission:?\s+(?P<name>\S+)",
        _constant("UserPermission"),
        _group("name"),
    ),
    _rule(
        "named-type-not-found",
        r"no (?P<type>(?-i:[A-Z])\w+) named (?P<name>\S+) found",
        _group("type"),
        _group("name"),
    ),
    _rule(
        "entity-not-found",
        r"Entity of type '(?P<type>\w+)' named '(?P<name>[^']+)' cannot be found",
        _group("type"),
        _group("name"),
    ),
    _rule(
        "invalid-field",
        r"Invalid field:?\s+(?P<field>[\w.]+)\s+for\s+(?:SObject|object)\s+(?P<object>\w+)",
        _constant("CustomField"),
        _field_name,
    ),
    _rule(
        "invalid-type",
        r"Invalid type:\s+(?P<name>[\w.]+)",
        _invalid_type,
        _group("name"),
    ),
    _not_found_rule("layout", "Layout"),
    _not_found_rule("record\\s*type", "RecordType"),
    _not_found_rule("trigger", "ApexTrigger"),
    _not_found_rule("class", "ApexClass"),
    _not_found_rule("object", NESTED_PARENT_TYPE),
    _not_found_rule("field", "CustomField"),
)


def parse_diagnostic(text: str, rules: Sequence[DiagnosticRule] = DEFAULT_RULES) -> DiagnosticMatch | None:
    """Return the first rule match for ``text`` or ``None`` when nothing matches.

    Args:
        text: One free-text diagnostic line.
        rules: Ordered rule table; defaults to :data:`DEFAULT_RULES`.

    Returns:
        DiagnosticMatch | None: Match from the first applicable rule.
    """

    for rule in rules:
        ref = rule.apply(text)
        if ref is not None:
            return DiagnosticMatch(text=text, rule=rule.name, ref=ref)
    return None


def parse_diagnostics(
    diagnostics: Iterable[str],
    rules: Sequence[DiagnosticRule] = DEFAULT_RULES,
) -> tuple[list[DiagnosticMatch], list[str]]:
    """Split ``diagnostics`` into recognised matches and verbatim unmatched lines.

    Multi-line diagnostics are evaluated line by line and blank lines are dropped.
    """

    matches: list[DiagnosticMatch] = []
    unmatched: list[str] = []
    for diagnostic in diagnostics:
        for line in diagnostic.splitlines():
            text = line.strip()
            if not text:
                continue
            match = parse_diagnostic(text, rules)
            if match is None:
                unmatched.append(text)
            else:
                matches.append(match)
    return matches, unmatched


__all__ = [
    "DEFAULT_RULES",
    "DiagnosticMatch",
    "DiagnosticRule",
    "parse_diagnostic",
    "parse_diagnostics",
]
