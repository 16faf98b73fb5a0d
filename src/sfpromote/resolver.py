# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolve metadata file paths to artifact references and back."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path, PurePath, PurePosixPath
from typing import Final

from .catalog import ArtifactTypeCatalog
from .constants import (
    BUNDLE_TYPES,
    IN_FOLDER_TYPES,
    NESTED_CHILD_DIRECTORIES,
    NESTED_PARENT_SEGMENT,
    SOURCE_ROOT_SUFFIX,
    UNPACKAGED_SEGMENT,
)
from .models import ArtifactRef

META_SUFFIX: Final[str] = "-meta.xml"
# Types whose member names legitimately contain dots (``Type.Record``).
DOTTED_NAME_TYPES: Final[frozenset[str]] = frozenset({"CustomMetadata", "QuickAction"})
_SOURCE_ROOT_DEPTH: Final[int] = 3
_NESTED_MIN_SEGMENTS: Final[int] = 4


def split_segments(relative_path: str | PurePath) -> list[str]:
    """Return the non-empty path segments of ``relative_path`` using POSIX semantics."""

    text = str(relative_path).replace("\\", "/")
    return [part for part in PurePosixPath(text).parts if part not in ("", ".", "/")]


def normalize_segments(segments: Sequence[str]) -> tuple[str, ...]:
    """Strip the optional ``unpackaged`` wrapper and ``<pkg>/main/default`` prefix.

    Args:
        segments: Path segments relative to a tree root.

    Returns:
        tuple[str, ...]: Segments starting at the artifact type directory.
    """

    parts = list(segments)
    if parts and parts[0] == UNPACKAGED_SEGMENT:
        parts = parts[1:]
    if len(parts) > _SOURCE_ROOT_DEPTH and tuple(parts[1:_SOURCE_ROOT_DEPTH]) == SOURCE_ROOT_SUFFIX:
        parts = parts[_SOURCE_ROOT_DEPTH:]
    return tuple(parts)


def normalize_relative_path(relative_path: str | PurePath) -> str:
    """Return ``relative_path`` with optional wrapper prefixes removed, POSIX-joined."""

    return "/".join(normalize_segments(split_segments(relative_path)))


def strip_suffixes(file_name: str, *, keep_inner_dots: bool = False) -> str:
    """Return ``file_name`` without its dotted suffixes.

    ``Foo.cls-meta.xml`` and ``Foo.cls`` both become ``Foo``. With
    ``keep_inner_dots`` only the trailing extension chain is removed, so
    ``Type.Record.md-meta.xml`` becomes ``Type.Record``.
    """

    if not keep_inner_dots:
        return file_name.split(".", 1)[0]
    base = file_name.removesuffix(META_SUFFIX)
    head, sep, _ = base.rpartition(".")
    return head if sep and head else base


class PathResolver:
    """Map tree-relative file paths to :class:`ArtifactRef` values using a catalog."""

    def __init__(self, catalog: ArtifactTypeCatalog) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> ArtifactTypeCatalog:
        """Return the catalog backing this resolver."""

        return self._catalog

    def resolve(self, relative_path: str | PurePath) -> ArtifactRef | None:
        """Return the artifact addressed by ``relative_path`` or ``None`` when unresolved.

        Args:
            relative_path: Path relative to the tree root.

        Returns:
            ArtifactRef | None: Resolved reference; unknown input never raises.
        """

        segments = normalize_segments(split_segments(relative_path))
        if len(segments) < 2:
            return None
        type_name = self._catalog.lookup(segments[0])
        if type_name is None:
            return None
        if type_name in BUNDLE_TYPES:
            return ArtifactRef(type_name, strip_suffixes(segments[1]))
        if segments[0] == NESTED_PARENT_SEGMENT and len(segments) >= _NESTED_MIN_SEGMENTS:
            child_type = self._catalog.lookup(segments[2])
            if child_type is None:
                return None
            return ArtifactRef(child_type, f"{segments[1]}.{strip_suffixes(segments[-1])}")
        member = strip_suffixes(segments[-1], keep_inner_dots=type_name in DOTTED_NAME_TYPES)
        if type_name in IN_FOLDER_TYPES and len(segments) > 2:
            folder = "/".join(segments[1:-1])
            return ArtifactRef(type_name, f"{folder}/{member}")
        return ArtifactRef(type_name, member)

    def unrecognized_folder(self, relative_path: str | PurePath) -> str:
        """Return the folder name reported when ``relative_path`` cannot be resolved."""

        segments = normalize_segments(split_segments(relative_path))
        if not segments:
            return ""
        if segments[0] == NESTED_PARENT_SEGMENT and len(segments) >= _NESTED_MIN_SEGMENTS:
            return f"{NESTED_PARENT_SEGMENT}/{segments[2]}"
        return segments[0]

    def locate_sources(self, ref: ArtifactRef, root: Path) -> list[Path] | None:
        """Return source files under ``root`` that resolve to ``ref``.

        The search reverses the folder conventions used by :meth:`resolve`:
        the type's directory is looked up in the catalog and every candidate
        file beneath it is resolved again to confirm the match.

        Args:
            ref: Artifact to look for.
            root: Tree root, optionally wrapped in ``unpackaged`` or a
                ``<pkg>/main/default`` prefix.

        Returns:
            list[Path] | None: Matching files (possibly empty), or ``None`` when
            the type has no known source-file convention.
        """

        directory = self._catalog.directory_for(ref.type)
        if directory is None:
            return None
        if directory in NESTED_CHILD_DIRECTORIES:
            parent = ref.parent
            if parent is None:
                return []
            relative_dirs = [PurePosixPath(NESTED_PARENT_SEGMENT, parent, directory)]
        else:
            relative_dirs = [PurePosixPath(directory)]

        matches: list[Path] = []
        for base in _candidate_bases(root):
            for relative_dir in relative_dirs:
                search_dir = base / relative_dir
                if not search_dir.is_dir():
                    continue
                for candidate in _iter_visible_files(search_dir):
                    relative = candidate.relative_to(root)
                    if self.resolve(relative.as_posix()) == ref:
                        matches.append(candidate)
        return sorted(set(matches))


def _candidate_bases(root: Path) -> Iterator[Path]:
    yield root
    wrapped = root / UNPACKAGED_SEGMENT
    if wrapped.is_dir():
        yield wrapped
    for prefix_root in (root, wrapped):
        if not prefix_root.is_dir():
            continue
        yield from sorted(prefix_root.glob(f"*/{'/'.join(SOURCE_ROOT_SUFFIX)}"))


def _iter_visible_files(directory: Path) -> Iterator[Path]:
    for path in sorted(directory.rglob("*")):
        if path.is_file() and not any(part.startswith(".") for part in path.relative_to(directory).parts):
            yield path


__all__ = [
    "DOTTED_NAME_TYPES",
    "PathResolver",
    "normalize_relative_path",
    "normalize_segments",
    "split_segments",
    "strip_suffixes",
]
