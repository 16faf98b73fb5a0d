# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the sfpromote package."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True, slots=True, order=True)
class ArtifactRef:
    """Identify one named, typed unit of platform configuration."""

    type: str
    name: str

    @property
    def parent(self) -> str | None:
        """Return the parent qualifier for nested artifacts such as ``Account.Field__c``."""

        head, sep, _ = self.name.partition(".")
        return head if sep else None

    def __str__(self) -> str:
        return f"{self.type}:{self.name}"


class ArtifactSet:
    """Map artifact types to unique member names with deterministic iteration.

    Iteration yields :class:`ArtifactRef` values sorted by type and then by
    name regardless of insertion order.
    """

    __slots__ = ("_members",)

    def __init__(self, refs: Iterable[ArtifactRef] = ()) -> None:
        """Create a set seeded with ``refs``.

        Args:
            refs: Initial artifact references to include.
        """

        self._members: dict[str, set[str]] = {}
        for ref in refs:
            self.add(ref)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> ArtifactSet:
        """Return a set built from a ``type -> names`` mapping.

        Args:
            mapping: Member names keyed by artifact type.

        Returns:
            ArtifactSet: New set containing every ``(type, name)`` pair.
        """

        result = cls()
        for type_name, names in mapping.items():
            for name in names:
                result.add(ArtifactRef(type_name, name))
        return result

    def add(self, ref: ArtifactRef) -> bool:
        """Insert ``ref`` and report whether it was new.

        Args:
            ref: Artifact reference to include.

        Returns:
            bool: ``True`` when the reference was not already present.
        """

        names = self._members.setdefault(ref.type, set())
        if ref.name in names:
            return False
        names.add(ref.name)
        return True

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, ArtifactRef):
            return False
        return item.name in self._members.get(item.type, ())

    def __iter__(self) -> Iterator[ArtifactRef]:
        for type_name in self.types():
            for name in self.members(type_name):
                yield ArtifactRef(type_name, name)

    def __len__(self) -> int:
        return sum(len(names) for names in self._members.values())

    def __bool__(self) -> bool:
        return len(self) > 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArtifactSet):
            return NotImplemented
        return self.to_mapping() == other.to_mapping()

    def __repr__(self) -> str:
        return f"ArtifactSet({self.to_mapping()!r})"

    def types(self) -> list[str]:
        """Return the non-empty artifact types in lexicographic order."""

        return sorted(type_name for type_name, names in self._members.items() if names)

    def members(self, type_name: str) -> list[str]:
        """Return the member names of ``type_name`` in lexicographic order."""

        return sorted(self._members.get(type_name, ()))

    def copy(self) -> ArtifactSet:
        """Return an independent copy of the set."""

        clone = ArtifactSet()
        clone._members = {type_name: set(names) for type_name, names in self._members.items()}
        return clone

    def union(self, refs: Iterable[ArtifactRef]) -> ArtifactSet:
        """Return a new set containing this set's members plus ``refs``."""

        clone = self.copy()
        for ref in refs:
            clone.add(ref)
        return clone

    def missing(self, refs: Iterable[ArtifactRef]) -> list[ArtifactRef]:
        """Return the unique references from ``refs`` that are not in the set, sorted."""

        return sorted({ref for ref in refs if ref not in self})

    def issuperset(self, other: ArtifactSet) -> bool:
        """Return ``True`` when every member of ``other`` is present."""

        return all(ref in self for ref in other)

    def to_mapping(self) -> dict[str, list[str]]:
        """Return a sorted ``type -> names`` mapping."""

        return {type_name: self.members(type_name) for type_name in self.types()}


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Describe one file under a metadata tree together with its content hash."""

    absolute_path: Path
    relative_path: str
    content_hash: str


@dataclass(frozen=True, slots=True)
class DeltaResult:
    """Capture the outcome of comparing a source tree with a target tree."""

    additive: ArtifactSet
    destructive: ArtifactSet
    unrecognized_folders: frozenset[str] = frozenset()
    copied_files: tuple[str, ...] = ()
    skipped_files: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when neither additive nor destructive changes were found."""

        return not self.additive and not self.destructive


class Classification(str, Enum):
    """Enumerate whether a discovered dependency can be added automatically."""

    DEPLOYABLE = "deployable"
    NON_DEPLOYABLE = "non_deployable"


@dataclass(frozen=True, slots=True)
class DependencyCandidate:
    """Describe a dependency inferred from a validation diagnostic."""

    ref: ArtifactRef
    diagnostic: str
    classification: Classification
    reason: str
    remediation: str | None = None
    rule: str | None = None
    source_files: tuple[Path, ...] = ()

    @property
    def is_deployable(self) -> bool:
        """Return ``True`` when the candidate has source files on disk."""

        return self.classification is Classification.DEPLOYABLE


class ValidationOutcome(BaseModel):
    """Normalised result of a dry-run validation request."""

    model_config = ConfigDict(frozen=True)

    success: bool
    status: int = 0
    diagnostics: tuple[str, ...] = Field(default_factory=tuple)
    components_deployed: int = 0
    components_total: int = 0
    component_errors: int = 0
    tests_completed: int = 0
    tests_total: int = 0
    test_errors: int = 0
    job_id: str | None = None
    raw: str | None = Field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class IterationRecord:
    """Immutable history entry for one resolution loop iteration."""

    number: int
    artifacts: ArtifactSet
    descriptor_path: Path
    outcome: ValidationOutcome | None
    candidates: tuple[DependencyCandidate, ...] = ()
    unmatched: tuple[str, ...] = ()
    added: tuple[ArtifactRef, ...] = ()


__all__ = [
    "ArtifactRef",
    "ArtifactSet",
    "Classification",
    "DeltaResult",
    "DependencyCandidate",
    "FileRecord",
    "IterationRecord",
    "ValidationOutcome",
]
