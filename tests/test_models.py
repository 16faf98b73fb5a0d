# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

from sfpromote.models import ArtifactRef, ArtifactSet, DeltaResult


def test_artifact_set_iterates_sorted_regardless_of_insertion_order() -> None:
    forward = ArtifactSet([ArtifactRef("ApexClass", "Zed"), ArtifactRef("ApexClass", "Alpha"), ArtifactRef("Layout", "A")])
    backward = ArtifactSet([ArtifactRef("Layout", "A"), ArtifactRef("ApexClass", "Alpha"), ArtifactRef("ApexClass", "Zed")])

    assert list(forward) == list(backward)
    assert [str(ref) for ref in forward] == ["ApexClass:Alpha", "ApexClass:Zed", "Layout:A"]
    assert forward == backward


def test_artifact_set_add_reports_duplicates() -> None:
    artifacts = ArtifactSet()

    assert artifacts.add(ArtifactRef("ApexClass", "Foo")) is True
    assert artifacts.add(ArtifactRef("ApexClass", "Foo")) is False
    assert len(artifacts) == 1


def test_union_leaves_original_untouched() -> None:
    base = ArtifactSet([ArtifactRef("ApexClass", "Foo")])
    extended = base.union([ArtifactRef("CustomApplication", "Console")])

    assert len(base) == 1
    assert len(extended) == 2
    assert extended.issuperset(base)
    assert not base.issuperset(extended)


def test_missing_returns_unique_sorted_refs() -> None:
    base = ArtifactSet([ArtifactRef("ApexClass", "Foo")])
    refs = [ArtifactRef("ApexClass", "Bar"), ArtifactRef("ApexClass", "Foo"), ArtifactRef("ApexClass", "Bar")]

    assert base.missing(refs) == [ArtifactRef("ApexClass", "Bar")]


def test_from_mapping_and_to_mapping_agree() -> None:
    artifacts = ArtifactSet.from_mapping({"Layout": ["B", "A"], "ApexClass": ["Foo"]})

    assert artifacts.to_mapping() == {"ApexClass": ["Foo"], "Layout": ["A", "B"]}
    assert artifacts.types() == ["ApexClass", "Layout"]


def test_artifact_ref_parent() -> None:
    assert ArtifactRef("CustomField", "Account.Region__c").parent == "Account"
    assert ArtifactRef("ApexClass", "Foo").parent is None


def test_delta_result_is_empty() -> None:
    assert DeltaResult(additive=ArtifactSet(), destructive=ArtifactSet()).is_empty
    assert not DeltaResult(additive=ArtifactSet([ArtifactRef("ApexClass", "Foo")]), destructive=ArtifactSet()).is_empty
