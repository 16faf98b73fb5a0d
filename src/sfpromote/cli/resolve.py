# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command running the dependency-resolution loop on an existing manifest."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ..manifest import read_manifest
from ._services import load_catalog, report_resolution, run_resolution
from .shared import cli_errors, get_state, require_target_org

MANIFEST_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Package descriptor used as the first iteration.", exists=True, dir_okay=False, resolve_path=True),
]
SOURCE_OPTION = Annotated[
    list[Path] | None,
    typer.Option("--source", "-s", help="Tree searched for dependency sources (repeatable; defaults to --root)."),
]
PACKAGE_DIR_OPTION = Annotated[
    Path | None,
    typer.Option("--package-dir", help="Package directory receiving dependency sources (defaults to the manifest's)."),
]
YES_OPTION = Annotated[bool, typer.Option("--yes", "-y", help="Approve every extension without prompting.")]
MAX_ITERATIONS_OPTION = Annotated[
    int | None,
    typer.Option("--max-iterations", min=1, help="Inclusive bound on validation iterations."),
]
TIMEOUT_OPTION = Annotated[
    float | None,
    typer.Option("--timeout", min=1.0, help="Seconds allowed for each validation call."),
]
TEST_LEVEL_OPTION = Annotated[
    str | None,
    typer.Option("--test-level", help="Test level passed to the validation (e.g. NoTestRun, RunLocalTests)."),
]


def resolve_command(
    ctx: typer.Context,
    manifest: MANIFEST_ARGUMENT,
    source: SOURCE_OPTION = None,
    package_dir: PACKAGE_DIR_OPTION = None,
    yes: YES_OPTION = False,
    max_iterations: MAX_ITERATIONS_OPTION = None,
    timeout: TIMEOUT_OPTION = None,
    test_level: TEST_LEVEL_OPTION = None,
) -> None:
    """Validate MANIFEST and grow it with discovered dependencies."""

    state = get_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        config = state.load_config(
            resolution={
                "max_iterations": max_iterations,
                "validation_timeout": timeout,
                "test_level": test_level,
                "auto_approve": True if yes else None,
            },
        )
        require_target_org(config)
        initial, declared_version = read_manifest(manifest)
        if declared_version and declared_version != config.api_version:
            logger.debug(f"manifest version={declared_version} configured={config.api_version}")
        catalog = load_catalog(config, logger=logger)
        logger.section("Resolve")
        result = run_resolution(
            config,
            catalog,
            initial,
            source_roots=[path.resolve() for path in source] if source else [config.project_root],
            package_root=package_dir.resolve() if package_dir else manifest.parent,
            logger=logger,
            auto_approve=config.resolution.auto_approve,
        )
        report_resolution(result, logger=logger)


def register(app: typer.Typer) -> None:
    """Register the ``resolve`` command on ``app``."""

    app.command(name="resolve")(resolve_command)


__all__ = ["register", "resolve_command"]
