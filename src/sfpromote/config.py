# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and layered loading for sfpromote."""

from __future__ import annotations

import math
import os
import tomllib
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import (
    CATALOG_FILE_NAME,
    DEFAULT_API_VERSION,
    DEFAULT_CATALOG_MAX_AGE_DAYS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_VALIDATION_WAIT_MINUTES,
    PROJECT_DIR_NAME,
)
from .errors import ConfigError

PYPROJECT_FILE_NAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "sfpromote"
PROJECT_CONFIG_FILE_NAME: Final[str] = ".sfpromote.toml"


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent hashing.

    Returns:
        int: Roughly 75% of the available CPU cores, never less than one.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


class CatalogSettings(BaseModel):
    """Settings controlling the artifact type catalog cache."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    cache_path: Path | None = None
    max_age_days: int = Field(default=DEFAULT_CATALOG_MAX_AGE_DAYS, ge=0)
    refresh_timeout: float = Field(default=120.0, gt=0)


class CompareSettings(BaseModel):
    """Settings controlling tree comparison."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    output_dir: Path = Path(PROJECT_DIR_NAME) / "build"


class ResolutionSettings(BaseModel):
    """Settings controlling the dependency-resolution loop."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    validation_timeout: float | None = Field(default=None, gt=0)
    wait_minutes: int = Field(default=DEFAULT_VALIDATION_WAIT_MINUTES, ge=1)
    test_level: str = "NoTestRun"
    auto_approve: bool = False

    @field_validator("test_level")
    @classmethod
    def _check_test_level(cls, value: str) -> str:
        allowed = {"NoTestRun", "RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg"}
        if value not in allowed:
            raise ValueError(f"test_level must be one of {', '.join(sorted(allowed))}")
        return value


class PromoteConfig(BaseModel):
    """Top-level configuration passed explicitly through the engine."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    project_root: Path = Field(default_factory=Path.cwd)
    api_version: str = DEFAULT_API_VERSION
    target_org: str | None = None
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    compare: CompareSettings = Field(default_factory=CompareSettings)
    resolution: ResolutionSettings = Field(default_factory=ResolutionSettings)

    @field_validator("api_version")
    @classmethod
    def _check_api_version(cls, value: str) -> str:
        major, sep, minor = value.partition(".")
        if not (major.isdigit() and sep and minor.isdigit()):
            raise ValueError("api_version must look like '60.0'")
        return value

    def resolve_path(self, path: Path) -> Path:
        """Return ``path`` anchored at the project root when relative."""

        return path if path.is_absolute() else self.project_root / path

    @property
    def catalog_path(self) -> Path:
        """Return the on-disk location of the cached artifact type catalog."""

        configured = self.catalog.cache_path or Path(PROJECT_DIR_NAME) / CATALOG_FILE_NAME
        return self.resolve_path(configured)

    @property
    def output_dir(self) -> Path:
        """Return the directory receiving generated packages and reports."""

        return self.resolve_path(self.compare.output_dir)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` recursively updated with ``override`` without mutating either."""

    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def _drop_none(values: Mapping[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Mapping):
            nested = _drop_none(value)
            if nested:
                cleaned[key] = nested
        elif value is not None:
            cleaned[key] = value
    return cleaned


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Unable to read configuration at {path}: {exc}") from exc
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"Configuration at {path} must be a table")
    return dict(data)


def _pyproject_fragment(root: Path) -> dict[str, Any]:
    data = _read_toml(root / PYPROJECT_FILE_NAME)
    tool_section = data.get(PYPROJECT_TOOL_KEY)
    if not isinstance(tool_section, Mapping):
        return {}
    section = tool_section.get(PYPROJECT_SECTION_KEY)
    return dict(section) if isinstance(section, Mapping) else {}


def load_config(
    root: Path,
    *,
    overrides: Mapping[str, Any] | None = None,
    config_file: Path | None = None,
) -> PromoteConfig:
    """Resolve the effective configuration for ``root``.

    Layers are applied in order: built-in defaults, ``[tool.sfpromote]`` in
    ``pyproject.toml``, ``.sfpromote.toml`` (or ``config_file``), then
    ``overrides``. Later layers win and nested tables are deep-merged.

    Args:
        root: Project root used to discover configuration files.
        overrides: Values supplied programmatically or from the CLI.
        config_file: Explicit configuration file replacing ``.sfpromote.toml``.

    Returns:
        PromoteConfig: Validated configuration model.

    Raises:
        ConfigError: When a file cannot be parsed or the merged data is invalid.
    """

    resolved_root = root.resolve()
    if config_file is not None and not config_file.is_file():
        raise ConfigError(f"Configuration file not found: {config_file}")
    merged: dict[str, Any] = {"project_root": resolved_root}
    merged = _deep_merge(merged, _pyproject_fragment(resolved_root))
    merged = _deep_merge(merged, _read_toml(config_file or resolved_root / PROJECT_CONFIG_FILE_NAME))
    merged = _deep_merge(merged, _drop_none(overrides or {}))
    merged["project_root"] = resolved_root
    try:
        return PromoteConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


__all__ = [
    "CatalogSettings",
    "CompareSettings",
    "PromoteConfig",
    "ResolutionSettings",
    "default_parallel_jobs",
    "load_config",
]
