# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Artifact type catalog mapping metadata directories to canonical type names."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import MappingProxyType
from typing import Final, Protocol

from .constants import DEFAULT_DIRECTORY_TYPES, NESTED_CHILD_DIRECTORIES
from .errors import UpstreamQueryError
from .process import CommandOptions, run_command

LOGGER = logging.getLogger(__name__)

_REFRESHED_AT_KEY: Final[str] = "refreshed_at"
_ENTRIES_KEY: Final[str] = "entries"

CatalogPair = tuple[str, str]


class CatalogSource(Protocol):
    """Describe a collaborator able to list ``(directoryName, typeName)`` pairs."""

    def fetch(self) -> Sequence[CatalogPair]:
        """Return the directory/type pairs exposed by the environment."""
        ...


@dataclass(frozen=True, slots=True)
class ArtifactTypeCatalog:
    """Immutable directory-name to type-name mapping with a refresh timestamp."""

    entries: Mapping[str, str]
    refreshed_at: datetime | None = None
    _by_type: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(sorted(self.entries.items()))))
        reverse: dict[str, str] = {}
        for directory, type_name in self.entries.items():
            reverse.setdefault(type_name, directory)
        object.__setattr__(self, "_by_type", MappingProxyType(reverse))

    @classmethod
    def default(cls) -> ArtifactTypeCatalog:
        """Return the built-in catalog used before the first refresh."""

        return cls.from_pairs(DEFAULT_DIRECTORY_TYPES.items())

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[CatalogPair],
        *,
        refreshed_at: datetime | None = None,
    ) -> ArtifactTypeCatalog:
        """Build a catalog from ``pairs`` merged with the nested child directories.

        The first pair wins when a directory name appears more than once.

        Args:
            pairs: ``(directoryName, typeName)`` tuples.
            refreshed_at: Timestamp recorded for staleness checks.

        Returns:
            ArtifactTypeCatalog: Catalog containing unique directory keys.
        """

        entries: dict[str, str] = {}
        for directory, type_name in pairs:
            if not directory or not type_name:
                continue
            existing = entries.setdefault(directory, type_name)
            if existing != type_name:
                LOGGER.debug("Ignoring duplicate catalog directory %s -> %s", directory, type_name)
        for directory, type_name in NESTED_CHILD_DIRECTORIES.items():
            entries.setdefault(directory, type_name)
        return cls(entries=entries, refreshed_at=refreshed_at)

    def lookup(self, directory_name: str) -> str | None:
        """Return the type name registered for ``directory_name`` or ``None``."""

        return self.entries.get(directory_name)

    def directory_for(self, type_name: str) -> str | None:
        """Return the directory that stores artifacts of ``type_name`` or ``None``."""

        return self._by_type.get(type_name)

    def __contains__(self, directory_name: object) -> bool:
        return directory_name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def is_stale(self, max_age: timedelta, *, now: datetime | None = None) -> bool:
        """Return ``True`` when the catalog was never refreshed or is older than ``max_age``."""

        if self.refreshed_at is None:
            return True
        current = now or datetime.now(UTC)
        return current - self.refreshed_at > max_age

    def refresh(self, source: CatalogSource, *, now: datetime | None = None) -> ArtifactTypeCatalog:
        """Return a new catalog populated from ``source``.

        Args:
            source: Collaborator querying the environment's introspection API.
            now: Timestamp to record; defaults to the current UTC time.

        Returns:
            ArtifactTypeCatalog: Freshly populated catalog.

        Raises:
            UpstreamQueryError: If the source fails or yields no usable entries.
        """

        try:
            pairs = list(source.fetch())
        except UpstreamQueryError:
            raise
        except (OSError, ValueError, TypeError, KeyError) as exc:
            raise UpstreamQueryError(f"Catalog query failed: {exc}") from exc
        if not pairs:
            raise UpstreamQueryError("Catalog query returned no metadata types")
        return ArtifactTypeCatalog.from_pairs(pairs, refreshed_at=now or datetime.now(UTC))

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the catalog."""

        return {
            _REFRESHED_AT_KEY: self.refreshed_at.isoformat() if self.refreshed_at else None,
            _ENTRIES_KEY: dict(self.entries),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ArtifactTypeCatalog:
        """Rebuild a catalog from :meth:`to_payload` output.

        Raises:
            ValueError: If the payload is structurally invalid.
        """

        entries = payload.get(_ENTRIES_KEY)
        if not isinstance(entries, Mapping):
            raise ValueError("catalog payload is missing an 'entries' table")
        raw_timestamp = payload.get(_REFRESHED_AT_KEY)
        refreshed_at = datetime.fromisoformat(raw_timestamp) if isinstance(raw_timestamp, str) else None
        if refreshed_at is not None and refreshed_at.tzinfo is None:
            refreshed_at = refreshed_at.replace(tzinfo=UTC)
        return cls.from_pairs(((str(key), str(value)) for key, value in entries.items()), refreshed_at=refreshed_at)

    def save(self, path: Path) -> None:
        """Persist the catalog as JSON at ``path``."""

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_payload(), indent=2, sort_keys=True) + "\n", encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> ArtifactTypeCatalog | None:
        """Return the catalog cached at ``path`` or ``None`` when absent or unreadable."""

        if not path.is_file():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(payload, Mapping):
                raise ValueError("catalog cache root must be an object")
            return cls.from_payload(payload)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable catalog cache %s: %s", path, exc)
            return None


@dataclass(frozen=True, slots=True)
class CatalogRefreshResult:
    """Outcome of :func:`refresh_catalog`."""

    catalog: ArtifactTypeCatalog
    refreshed: bool
    warning: str | None = None


def refresh_catalog(
    path: Path,
    source: CatalogSource | None,
    *,
    max_age: timedelta,
    force: bool = False,
    now: datetime | None = None,
) -> CatalogRefreshResult:
    """Load the cached catalog and refresh it from ``source`` when stale.

    A failed refresh never raises. The previous cache (or the built-in
    defaults) stays authoritative and a staleness warning is returned.

    Args:
        path: Location of the JSON cache.
        source: Environment query collaborator; ``None`` disables refreshing.
        max_age: Age after which the cache is considered stale.
        force: Refresh even when the cache is fresh.
        now: Clock override used by tests.

    Returns:
        CatalogRefreshResult: Catalog to use plus refresh status.
    """

    cached = ArtifactTypeCatalog.load(path)
    current = cached or ArtifactTypeCatalog.default()
    if not force and cached is not None and not cached.is_stale(max_age, now=now):
        return CatalogRefreshResult(catalog=cached, refreshed=False)
    if source is None:
        warning = None
        if cached is None or cached.is_stale(max_age, now=now):
            warning = "Artifact type catalog is stale and no environment was provided to refresh it"
        return CatalogRefreshResult(catalog=current, refreshed=False, warning=warning)
    try:
        refreshed = current.refresh(source, now=now)
    except UpstreamQueryError as exc:
        origin = "cached catalog" if cached is not None else "built-in catalog"
        LOGGER.warning("Catalog refresh failed: %s", exc)
        return CatalogRefreshResult(
            catalog=current,
            refreshed=False,
            warning=f"Catalog refresh failed ({exc}); using the {origin}, which may be stale",
        )
    refreshed.save(path)
    return CatalogRefreshResult(catalog=refreshed, refreshed=True)


class SfCliCatalogSource:
    """Query metadata types through the ``sf`` command-line client."""

    def __init__(
        self,
        target_org: str,
        *,
        executable: str = "sf",
        api_version: str | None = None,
        timeout: float | None = 120.0,
    ) -> None:
        self._target_org = target_org
        self._executable = executable
        self._api_version = api_version
        self._timeout = timeout

    def command(self) -> list[str]:
        """Return the command used to list metadata types."""

        cmd = [self._executable, "org", "list", "metadata-types", "--target-org", self._target_org, "--json"]
        if self._api_version:
            cmd.extend(["--api-version", self._api_version])
        return cmd

    def fetch(self) -> list[CatalogPair]:
        """Run the query and return ``(directoryName, xmlName)`` pairs.

        Raises:
            UpstreamQueryError: When the command fails or its output cannot be parsed.
        """

        try:
            completed = run_command(self.command(), options=CommandOptions(timeout=self._timeout))
        except FileNotFoundError as exc:
            raise UpstreamQueryError(str(exc)) from exc
        return parse_metadata_types(completed.stdout, returncode=completed.returncode, stderr=completed.stderr)


def parse_metadata_types(stdout: str, *, returncode: int = 0, stderr: str | None = None) -> list[CatalogPair]:
    """Parse ``sf org list metadata-types --json`` output.

    Raises:
        UpstreamQueryError: When the payload is not valid JSON or reports a failure.
    """

    try:
        payload = json.loads(stdout or "")
    except json.JSONDecodeError as exc:
        detail = (stderr or stdout or "").strip()[:200]
        raise UpstreamQueryError(f"Unparseable metadata type listing: {detail or exc}") from exc
    if not isinstance(payload, Mapping):
        raise UpstreamQueryError("Metadata type listing must be a JSON object")
    status = payload.get("status", returncode)
    if returncode != 0 or status not in (0, None):
        raise UpstreamQueryError(str(payload.get("message") or f"metadata type listing exited with {returncode}"))
    result = payload.get("result")
    objects = result.get("metadataObjects") if isinstance(result, Mapping) else None
    if not isinstance(objects, list):
        raise UpstreamQueryError("Metadata type listing is missing 'metadataObjects'")
    pairs: list[CatalogPair] = []
    for item in objects:
        if not isinstance(item, Mapping):
            continue
        directory = item.get("directoryName")
        type_name = item.get("xmlName")
        if isinstance(directory, str) and isinstance(type_name, str):
            pairs.append((directory, type_name))
    return pairs


__all__ = [
    "ArtifactTypeCatalog",
    "CatalogRefreshResult",
    "CatalogSource",
    "SfCliCatalogSource",
    "parse_metadata_types",
    "refresh_catalog",
]
