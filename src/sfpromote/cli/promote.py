# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command chaining comparison and dependency resolution."""

from __future__ import annotations

import typer

from ._services import load_catalog, report_resolution, run_compare, run_resolution
from .compare import JOBS_OPTION, OUTPUT_OPTION, SOURCE_ARGUMENT, TARGET_ARGUMENT
from .resolve import MAX_ITERATIONS_OPTION, TEST_LEVEL_OPTION, TIMEOUT_OPTION, YES_OPTION
from .shared import cli_errors, get_state, require_target_org


def promote_command(
    ctx: typer.Context,
    source: SOURCE_ARGUMENT,
    target: TARGET_ARGUMENT,
    output: OUTPUT_OPTION = None,
    jobs: JOBS_OPTION = None,
    yes: YES_OPTION = False,
    max_iterations: MAX_ITERATIONS_OPTION = None,
    timeout: TIMEOUT_OPTION = None,
    test_level: TEST_LEVEL_OPTION = None,
) -> None:
    """Compare SOURCE with TARGET, then validate the package until it deploys cleanly."""

    state = get_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        config = state.load_config(
            compare={"output_dir": output, "jobs": jobs},
            resolution={
                "max_iterations": max_iterations,
                "validation_timeout": timeout,
                "test_level": test_level,
                "auto_approve": True if yes else None,
            },
        )
        require_target_org(config)
        catalog = load_catalog(config, logger=logger)
        logger.section("Compare")
        report = run_compare(config, catalog, source, target, logger=logger)
        if report.delta.is_empty:
            logger.ok("Source and target are identical; nothing to promote")
            return
        logger.section("Resolve")
        result = run_resolution(
            config,
            catalog,
            report.delta.additive,
            source_roots=[source],
            package_root=report.package_root,
            logger=logger,
            auto_approve=config.resolution.auto_approve,
        )
        report_resolution(result, logger=logger)


def register(app: typer.Typer) -> None:
    """Register the ``promote`` command on ``app``."""

    app.command(name="promote")(promote_command)


__all__ = ["promote_command", "register"]
