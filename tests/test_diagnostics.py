# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

import re

import pytest

from sfpromote.diagnostics import DEFAULT_RULES, DiagnosticRule, parse_diagnostic, parse_diagnostics
from sfpromote.models import ArtifactRef

CORPUS = [
    (
        "An object 'Foo' of type ApexClass was named in package.xml, but was not found in zipped directory",
        "missing-from-package",
        ArtifactRef("ApexClass", "Foo"),
    ),
    (
        "ApexClass 'Foo' is missing its companion metadata",
        "missing-companion-metadata",
        ArtifactRef("ApexClass", "Foo"),
    ),
    ("no CustomApplication named Console found", "application-not-found", ArtifactRef("CustomApplication", "Console")),
    ("Unknown user permission: ManageSandboxes", "unknown-user-permission", ArtifactRef("UserPermission", "ManageSandboxes")),
    ("In field: tab - no CustomTab named Invoice__c found", "named-type-not-found", ArtifactRef("CustomTab", "Invoice__c")),
    (
        "Entity of type 'ApexClass' named 'Helper' cannot be found",
        "entity-not-found",
        ArtifactRef("ApexClass", "Helper"),
    ),
    ("Invalid field Region__c for SObject Account", "invalid-field", ArtifactRef("CustomField", "Account.Region__c")),
    ("Invalid field: Account.Region__c for object Account", "invalid-field", ArtifactRef("CustomField", "Account.Region__c")),
    ("Invalid type: Invoice__c", "invalid-type", ArtifactRef("CustomObject", "Invoice__c")),
    ("Invalid type: PaymentService", "invalid-type", ArtifactRef("ApexClass", "PaymentService")),
    ("Layout 'Account-Account Layout' not found", "layout-not-found", ArtifactRef("Layout", "Account-Account Layout")),
    ("Record Type Account.Business not found", "recordtype-not-found", ArtifactRef("RecordType", "Account.Business")),
    ("Trigger AccountTrigger does not exist", "apextrigger-not-found", ArtifactRef("ApexTrigger", "AccountTrigger")),
    ("Class PaymentService not found", "apexclass-not-found", ArtifactRef("ApexClass", "PaymentService")),
    ("Object Invoice__c was not found", "customobject-not-found", ArtifactRef("CustomObject", "Invoice__c")),
    ("Field Account.Region__c was not found", "customfield-not-found", ArtifactRef("CustomField", "Account.Region__c")),
]


@pytest.mark.parametrize(("text", "rule", "ref"), CORPUS)
def test_rule_corpus(text: str, rule: str, ref: ArtifactRef) -> None:
    match = parse_diagnostic(text)

    assert match is not None
    assert match.rule == rule
    assert match.ref == ref
    assert match.text == text


def test_specific_application_rule_wins_over_generic_rule() -> None:
    names = [rule.name for rule in DEFAULT_RULES]

    assert names.index("application-not-found") < names.index("named-type-not-found")
    assert parse_diagnostic("no CustomApplication named Console found").rule == "application-not-found"  # type: ignore[union-attr]


def test_matching_is_case_insensitive() -> None:
    match = parse_diagnostic("NO CUSTOMAPPLICATION NAMED Console FOUND")

    assert match is not None
    assert match.ref == ArtifactRef("CustomApplication", "Console")


def test_trailing_punctuation_is_trimmed() -> None:
    match = parse_diagnostic("Unknown user permission: ManageSandboxes.")

    assert match is not None
    assert match.ref.name == "ManageSandboxes"


def test_unrecognised_text_is_returned_verbatim() -> None:
    matches, unmatched = parse_diagnostics(
        [
            "no CustomApplication named Console found\n\n  Something unexpected happened  ",
            "Class PaymentService not found",
        ],
    )

    assert [match.ref for match in matches] == [
        ArtifactRef("CustomApplication", "Console"),
        ArtifactRef("ApexClass", "PaymentService"),
    ]
    assert unmatched == ["Something unexpected happened"]


def test_custom_rule_table() -> None:
    rule = DiagnosticRule(
        name="widget",
        pattern=re.compile(r"widget (?P<name>\w+) missing"),
        type_extractor=lambda _match: "Widget",
        name_extractor=lambda match: match.group("name"),
    )

    matches, unmatched = parse_diagnostics(["widget Gear missing", "no CustomApplication named X found"], [rule])

    assert [match.ref for match in matches] == [ArtifactRef("Widget", "Gear")]
    assert unmatched == ["no CustomApplication named X found"]


def test_named_type_rule_requires_a_type_name() -> None:
    assert parse_diagnostic("no field named Region__c found") is None
    match = parse_diagnostic("no ApexPage named Checkout found")
    assert match is not None
    assert match.rule == "named-type-not-found"
    assert match.ref == ArtifactRef("ApexPage", "Checkout")
