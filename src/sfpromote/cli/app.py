# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring global options and commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .. import __version__
from . import catalog, compare, promote, resolve
from .shared import CLIState, configure_logging
from .typer_ext import create_typer

ROOT_OPTION = Annotated[
    Path,
    typer.Option("--root", "-r", help="Project root holding configuration and the catalog cache."),
]
TARGET_ORG_OPTION = Annotated[
    str | None,
    typer.Option("--target-org", "-o", envvar="SFPROMOTE_TARGET_ORG", help="Alias or username of the target org."),
]
API_VERSION_OPTION = Annotated[
    str | None,
    typer.Option("--api-version", help="Metadata API version written into package descriptors."),
]
CONFIG_OPTION = Annotated[
    Path | None,
    typer.Option("--config", help="Configuration file used instead of .sfpromote.toml.", dir_okay=False),
]
EMOJI_OPTION = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji in output.")]
VERBOSE_OPTION = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug output.")]


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"sfpromote {__version__}")
        raise typer.Exit(code=0)


VERSION_OPTION = Annotated[
    bool,
    typer.Option("--version", help="Show the version and exit.", is_eager=True, callback=_show_version),
]

app = create_typer(
    name="sfpromote",
    help="Promote metadata between environments with dependency resolution.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    root: ROOT_OPTION = Path("."),
    target_org: TARGET_ORG_OPTION = None,
    api_version: API_VERSION_OPTION = None,
    config_file: CONFIG_OPTION = None,
    emoji: EMOJI_OPTION = True,
    verbose: VERBOSE_OPTION = False,
    version: VERSION_OPTION = False,
) -> None:
    """Collect global options shared by every command."""

    del version
    configure_logging(verbose=verbose)
    ctx.obj = CLIState(
        root=root.resolve(),
        target_org=target_org,
        api_version=api_version,
        config_file=config_file.resolve() if config_file else None,
        emoji=emoji,
        verbose=verbose,
    )


compare.register(app)
resolve.register(app)
promote.register(app)
catalog.register(app)

__all__ = ["app"]
