# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from sfpromote.catalog import ArtifactTypeCatalog
from sfpromote.models import ValidationOutcome
from sfpromote.resolver import PathResolver

Step = ValidationOutcome | BaseException | Callable[[Path], ValidationOutcome]


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> content) under ``root`` and return ``root``."""

    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def failure(*diagnostics: str) -> ValidationOutcome:
    """Return a failed validation outcome carrying ``diagnostics``."""

    return ValidationOutcome(success=False, status=1, diagnostics=tuple(diagnostics))


def success() -> ValidationOutcome:
    """Return a successful validation outcome."""

    return ValidationOutcome(success=True, components_deployed=1, components_total=1)


class ScriptedValidator:
    """Validator stub replaying scripted outcomes; the last step repeats."""

    def __init__(self, steps: Iterable[Step]) -> None:
        self._steps = list(steps)
        self.manifests: list[str] = []
        self.timeouts: list[float | None] = []

    def validate(
        self,
        manifest_path: Path,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ValidationOutcome:
        self.manifests.append(manifest_path.read_text(encoding="utf-8"))
        self.timeouts.append(timeout)
        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return step(manifest_path)
        return step


@pytest.fixture
def catalog() -> ArtifactTypeCatalog:
    """Return the built-in artifact type catalog."""

    return ArtifactTypeCatalog.default()


@pytest.fixture
def resolver(catalog: ArtifactTypeCatalog) -> PathResolver:
    """Return a resolver bound to the built-in catalog."""

    return PathResolver(catalog)
