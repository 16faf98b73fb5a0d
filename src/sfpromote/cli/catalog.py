# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI commands managing the cached artifact type catalog."""

from __future__ import annotations

from datetime import timedelta

import typer
from rich import box
from rich.table import Table

from ..catalog import ArtifactTypeCatalog, refresh_catalog
from ._services import catalog_source
from .shared import CLIError, cli_errors, get_state, require_target_org
from .typer_ext import create_typer

catalog_app = create_typer(name="catalog", help="Inspect or refresh the artifact type catalog.", no_args_is_help=True)


@catalog_app.command("refresh")
def refresh_command(ctx: typer.Context) -> None:
    """Query the target org for metadata types and update the cache."""

    state = get_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        config = state.load_config()
        require_target_org(config)
        result = refresh_catalog(
            config.catalog_path,
            catalog_source(config),
            max_age=timedelta(days=config.catalog.max_age_days),
            force=True,
        )
        if not result.refreshed:
            raise CLIError(result.warning or "Catalog refresh failed; the previous catalog remains in use")
        logger.ok(f"Catalog refreshed with {len(result.catalog)} directories -> {config.catalog_path}")


@catalog_app.command("show")
def show_command(ctx: typer.Context) -> None:
    """Print the cached catalog, or the built-in defaults when no cache exists."""

    state = get_state(ctx)
    logger = state.logger()
    with cli_errors(logger):
        config = state.load_config()
        catalog = ArtifactTypeCatalog.load(config.catalog_path)
        if catalog is None:
            logger.warn(f"No cached catalog at {config.catalog_path}; showing built-in defaults")
            catalog = ArtifactTypeCatalog.default()
        refreshed = catalog.refreshed_at.isoformat() if catalog.refreshed_at else "never"
        table = Table(title=f"Artifact types (refreshed: {refreshed})", box=box.SIMPLE)
        table.add_column("Directory", style="bold")
        table.add_column("Type")
        for directory, type_name in catalog.entries.items():
            table.add_row(directory, type_name)
        logger.console.print(table)


def register(app: typer.Typer) -> None:
    """Attach the ``catalog`` command group to ``app``."""

    app.add_typer(catalog_app, name="catalog")


__all__ = ["catalog_app", "register"]
