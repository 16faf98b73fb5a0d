# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command comparing two metadata trees."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ._services import load_catalog, run_compare
from .shared import cli_errors, get_state

SOURCE_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Source tree holding the desired metadata.", file_okay=False, resolve_path=True),
]
TARGET_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Target tree holding the destination's current metadata.", file_okay=False, resolve_path=True),
]
OUTPUT_OPTION = Annotated[
    Path | None,
    typer.Option("--output", "-O", help="Directory receiving the package (defaults to the configured output_dir)."),
]
JOBS_OPTION = Annotated[
    int | None,
    typer.Option("--jobs", "-j", min=1, help="Worker threads used for hashing."),
]


def compare_command(
    ctx: typer.Context,
    source: SOURCE_ARGUMENT,
    target: TARGET_ARGUMENT,
    output: OUTPUT_OPTION = None,
    jobs: JOBS_OPTION = None,
) -> None:
    """Write package.xml and destructiveChanges.xml describing SOURCE minus TARGET."""

    state = get_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        config = state.load_config(compare={"output_dir": output, "jobs": jobs})
        catalog = load_catalog(config, logger=logger)
        logger.section("Compare")
        run_compare(config, catalog, source, target, logger=logger)


def register(app: typer.Typer) -> None:
    """Register the ``compare`` command on ``app``."""

    app.command(name="compare")(compare_command)


__all__ = ["compare_command", "register"]
