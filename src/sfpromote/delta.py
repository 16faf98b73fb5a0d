# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compare two metadata trees and derive additive and destructive artifact sets."""

from __future__ import annotations

import hashlib
import logging
import shutil
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Final

from .catalog import ArtifactTypeCatalog
from .constants import BUNDLE_TYPES, MANIFEST_FILE_PREFIXES
from .models import ArtifactRef, ArtifactSet, DeltaResult, FileRecord
from .resolver import PathResolver, normalize_segments, split_segments

LOGGER = logging.getLogger(__name__)

_HASH_CHUNK_SIZE: Final[int] = 1024 * 1024


class _Pass(str, Enum):
    ADDITIVE = "additive"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True, slots=True)
class _TreeEntry:
    """File discovered while indexing a tree, keyed by its normalised path."""

    absolute_path: Path
    relative_path: str
    key: str


@dataclass(frozen=True, slots=True)
class _FileOutcome:
    """Result of processing one file, handed to the single result writer."""

    kind: _Pass
    relative_path: str
    ref: ArtifactRef | None = None
    unrecognized_folder: str | None = None
    copied: bool = False
    skipped: bool = False


def hash_file(path: Path, relative_path: str) -> FileRecord:
    """Return a :class:`FileRecord` carrying the SHA-256 digest of ``path``.

    Raises:
        OSError: If the file cannot be read.
    """

    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(partial(handle.read, _HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return FileRecord(absolute_path=path, relative_path=relative_path, content_hash=hasher.hexdigest())


def is_ignored(relative_path: str) -> bool:
    """Return ``True`` for hidden entries and root-level manifest files."""

    segments = split_segments(relative_path)
    if any(segment.startswith(".") for segment in segments):
        return True
    normalized = normalize_segments(segments)
    return len(normalized) == 1 and normalized[0].startswith(MANIFEST_FILE_PREFIXES)


class DeltaComparator:
    """Walk a source and a target tree and classify artifacts as added or removed.

    Files correspond only by normalised relative path. A renamed file therefore
    shows up once as an addition and once as a removal.
    """

    def __init__(
        self,
        catalog: ArtifactTypeCatalog,
        *,
        jobs: int = 1,
        package_root: Path | None = None,
    ) -> None:
        """Create a comparator bound to ``catalog``.

        Args:
            catalog: Catalog used to resolve file paths to artifact types.
            jobs: Worker count for per-file hashing and resolution.
            package_root: Directory receiving copies of changed source files.
        """

        self._resolver = PathResolver(catalog)
        self._jobs = max(1, jobs)
        self._package_root = package_root

    @property
    def resolver(self) -> PathResolver:
        """Return the resolver used for both passes."""

        return self._resolver

    def compare(self, source_root: Path, target_root: Path) -> DeltaResult:
        """Compare ``source_root`` against ``target_root``.

        Both passes are submitted to one worker pool. Results are inserted
        into the accumulators by the calling thread only.

        Args:
            source_root: Tree holding the desired state.
            target_root: Tree holding the current state of the destination.

        Returns:
            DeltaResult: Additive and destructive sets plus unrecognised folders.

        Raises:
            NotADirectoryError: If either root is not a directory.
        """

        for root in (source_root, target_root):
            if not root.is_dir():
                raise NotADirectoryError(f"Metadata tree not found: {root}")

        source_index = _index_tree(source_root)
        target_index = _index_tree(target_root)
        LOGGER.debug("Indexed %d source and %d target files", len(source_index), len(target_index))

        additive = ArtifactSet()
        destructive = ArtifactSet()
        unrecognized: set[str] = set()
        copied: list[str] = []
        skipped: list[str] = []

        with ThreadPoolExecutor(max_workers=self._jobs) as executor:
            futures: list[Future[_FileOutcome]] = [
                executor.submit(self._process_source, entry, target_index.get(key))
                for key, entry in source_index.items()
            ]
            futures.extend(
                executor.submit(self._process_target, entry)
                for key, entry in target_index.items()
                if key not in source_index
            )
            for future in as_completed(futures):
                outcome = future.result()
                if outcome.skipped:
                    skipped.append(outcome.relative_path)
                    continue
                if outcome.unrecognized_folder is not None:
                    unrecognized.add(outcome.unrecognized_folder)
                    continue
                if outcome.ref is None:
                    continue
                if outcome.kind is _Pass.ADDITIVE:
                    additive.add(outcome.ref)
                    if outcome.copied:
                        copied.append(outcome.relative_path)
                else:
                    destructive.add(outcome.ref)

        destructive = self._reconcile_removals(additive, destructive, source_index)
        self._complete_bundles(additive, source_root, copied)
        for folder in sorted(unrecognized):
            LOGGER.warning("Unrecognized metadata folder excluded from the manifest: %s", folder)
        return DeltaResult(
            additive=additive,
            destructive=destructive,
            unrecognized_folders=frozenset(unrecognized),
            copied_files=tuple(sorted(copied)),
            skipped_files=tuple(sorted(skipped)),
        )

    def _process_source(self, entry: _TreeEntry, counterpart: _TreeEntry | None) -> _FileOutcome:
        try:
            source_record = hash_file(entry.absolute_path, entry.relative_path)
            if counterpart is not None:
                target_record = hash_file(counterpart.absolute_path, counterpart.relative_path)
                if target_record.content_hash == source_record.content_hash:
                    return _FileOutcome(kind=_Pass.ADDITIVE, relative_path=entry.relative_path)
        except OSError as exc:
            LOGGER.warning("Skipping unreadable file %s: %s", entry.relative_path, exc)
            return _FileOutcome(kind=_Pass.ADDITIVE, relative_path=entry.relative_path, skipped=True)

        ref = self._resolver.resolve(entry.relative_path)
        if ref is None:
            return _FileOutcome(
                kind=_Pass.ADDITIVE,
                relative_path=entry.relative_path,
                unrecognized_folder=self._resolver.unrecognized_folder(entry.relative_path),
            )
        copied = self._copy_into_package(entry.absolute_path, entry.relative_path)
        return _FileOutcome(kind=_Pass.ADDITIVE, relative_path=entry.relative_path, ref=ref, copied=copied)

    def _process_target(self, entry: _TreeEntry) -> _FileOutcome:
        ref = self._resolver.resolve(entry.relative_path)
        if ref is None:
            return _FileOutcome(
                kind=_Pass.DESTRUCTIVE,
                relative_path=entry.relative_path,
                unrecognized_folder=self._resolver.unrecognized_folder(entry.relative_path),
            )
        return _FileOutcome(kind=_Pass.DESTRUCTIVE, relative_path=entry.relative_path, ref=ref)

    def _reconcile_removals(
        self,
        additive: ArtifactSet,
        destructive: ArtifactSet,
        source_index: dict[str, _TreeEntry],
    ) -> ArtifactSet:
        """Drop removals of artifacts that some source file still resolves to.

        A file removed from a bundle that survives in the source marks the
        bundle as changed instead of deleted.
        """

        if not destructive:
            return destructive
        surviving = {
            ref for entry in source_index.values() if (ref := self._resolver.resolve(entry.relative_path)) is not None
        }
        kept = ArtifactSet()
        for ref in destructive:
            if ref not in surviving:
                kept.add(ref)
                continue
            if ref.type in BUNDLE_TYPES:
                additive.add(ref)
            LOGGER.debug("Keeping %s; it still has source files", ref)
        return kept

    def _complete_bundles(self, additive: ArtifactSet, source_root: Path, copied: list[str]) -> None:
        """Copy the unchanged siblings of every changed bundle into the package."""

        if self._package_root is None:
            return
        already = set(copied)
        for ref in additive:
            if ref.type not in BUNDLE_TYPES:
                continue
            for path in self._resolver.locate_sources(ref, source_root) or ():
                relative = path.relative_to(source_root).as_posix()
                if relative not in already and self._copy_into_package(path, relative):
                    already.add(relative)
                    copied.append(relative)

    def _copy_into_package(self, absolute_path: Path, relative_path: str) -> bool:
        if self._package_root is None:
            return False
        destination = self._package_root / relative_path
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(absolute_path, destination)
        except OSError as exc:
            LOGGER.warning("Unable to copy %s into the package: %s", relative_path, exc)
            return False
        return True


def _index_tree(root: Path) -> dict[str, _TreeEntry]:
    index: dict[str, _TreeEntry] = {}
    for entry in _walk(root):
        existing = index.setdefault(entry.key, entry)
        if existing is not entry:
            LOGGER.debug("Ignoring %s; %s already maps to %s", entry.relative_path, entry.key, existing.relative_path)
    return index


def _walk(root: Path) -> Iterator[_TreeEntry]:
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root).as_posix()
        if is_ignored(relative):
            continue
        key = "/".join(normalize_segments(split_segments(relative)))
        yield _TreeEntry(absolute_path=path, relative_path=relative, key=key)


__all__ = ["DeltaComparator", "hash_file", "is_ignored"]
