# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helper services shared by the compare, resolve and promote commands."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import click
import typer

from ..catalog import ArtifactTypeCatalog, SfCliCatalogSource, refresh_catalog
from ..classification import DependencyClassifier
from ..config import PromoteConfig
from ..constants import DESTRUCTIVE_FILE_NAME, PACKAGE_DIR_NAME, PACKAGE_FILE_NAME
from ..delta import DeltaComparator
from ..manifest import generate, write_descriptor
from ..models import ArtifactRef, ArtifactSet, DeltaResult
from ..resolution import Approver, LoopState, ResolutionLoop, ResolutionResult, always_approve
from ..resolver import PathResolver
from ..validation import SfCliValidator, Validator
from .shared import CLILogger, require_target_org


@dataclass(frozen=True, slots=True)
class CompareReport:
    """Files produced by a comparison run."""

    delta: DeltaResult
    package_root: Path
    package_path: Path
    destructive_path: Path | None


def catalog_source(config: PromoteConfig) -> SfCliCatalogSource | None:
    """Return the catalog query collaborator for the configured target org, if any."""

    if not config.target_org:
        return None
    return SfCliCatalogSource(
        config.target_org,
        api_version=config.api_version,
        timeout=config.catalog.refresh_timeout,
    )


def load_catalog(config: PromoteConfig, *, logger: CLILogger) -> ArtifactTypeCatalog:
    """Return the artifact type catalog, refreshing it from the target org when stale.

    Refresh failures are reported as warnings and never abort the command.
    """

    result = refresh_catalog(
        config.catalog_path,
        catalog_source(config),
        max_age=timedelta(days=config.catalog.max_age_days),
    )
    if result.warning:
        logger.warn(result.warning)
    if result.refreshed:
        logger.debug(f"catalog refreshed entries={len(result.catalog)} path={config.catalog_path}")
    return result.catalog


def run_compare(
    config: PromoteConfig,
    catalog: ArtifactTypeCatalog,
    source: Path,
    target: Path,
    *,
    logger: CLILogger,
) -> CompareReport:
    """Compare ``source`` with ``target`` and write the package into the output directory.

    Raises:
        NotADirectoryError: If either tree is missing.
    """

    package_root = config.output_dir / PACKAGE_DIR_NAME
    comparator = DeltaComparator(catalog, jobs=config.compare.jobs, package_root=package_root)
    delta = comparator.compare(source, target)
    package_path = write_descriptor(generate(delta.additive, config.api_version), package_root / PACKAGE_FILE_NAME)
    destructive_path: Path | None = None
    destructive_target = package_root / DESTRUCTIVE_FILE_NAME
    if delta.destructive:
        destructive_path = write_descriptor(generate(delta.destructive, config.api_version), destructive_target)
    elif destructive_target.exists():
        destructive_target.unlink()

    logger.ok(f"Additive: {len(delta.additive)} artifact(s) -> {package_path}")
    if destructive_path is not None:
        logger.warn(f"Destructive: {len(delta.destructive)} artifact(s) -> {destructive_path}")
    else:
        logger.info("Destructive: none")
    if delta.unrecognized_folders:
        logger.warn(f"Unrecognized folders skipped: {', '.join(sorted(delta.unrecognized_folders))}")
    if delta.skipped_files:
        logger.warn(f"Unreadable files skipped: {len(delta.skipped_files)}")
    return CompareReport(
        delta=delta,
        package_root=package_root,
        package_path=package_path,
        destructive_path=destructive_path,
    )


def build_validator(config: PromoteConfig) -> Validator:
    """Return the dry-run validator for the configured target org."""

    return SfCliValidator(
        require_target_org(config),
        test_level=config.resolution.test_level,
        wait_minutes=config.resolution.wait_minutes,
        api_version=config.api_version,
        cwd=config.project_root,
    )


def interactive_approver(logger: CLILogger) -> Approver:
    """Return an approver that asks the operator before each extension."""

    def approve(iteration: int, additions: Sequence[ArtifactRef]) -> bool:
        logger.info(f"Iteration {iteration} would add {len(additions)} dependency(ies):")
        for ref in additions:
            logger.echo(f"  + {ref}")
        try:
            return typer.confirm(f"Start iteration {iteration}?", default=True)
        except click.exceptions.Abort:
            return False

    return approve


def run_resolution(
    config: PromoteConfig,
    catalog: ArtifactTypeCatalog,
    initial: ArtifactSet,
    *,
    source_roots: Sequence[Path],
    package_root: Path | None,
    logger: CLILogger,
    auto_approve: bool,
    validator: Validator | None = None,
    cancel_event: threading.Event | None = None,
) -> ResolutionResult:
    """Run the dependency-resolution loop for ``initial``."""

    def on_state(state: LoopState, iteration: int) -> None:
        if state is LoopState.VALIDATING:
            logger.info(f"Iteration {iteration}: validating against {config.target_org}")
        elif state is LoopState.EXTENDING:
            logger.warn(f"Iteration {iteration}: validation failed; deployable dependencies found")

    loop = ResolutionLoop(
        validator or build_validator(config),
        DependencyClassifier(PathResolver(catalog), source_roots),
        work_dir=config.output_dir,
        approver=always_approve if auto_approve else interactive_approver(logger),
        max_iterations=config.resolution.max_iterations,
        api_version=config.api_version,
        timeout=config.resolution.validation_timeout,
        package_root=package_root,
        listener=on_state,
    )
    return loop.run(initial, cancel_event=cancel_event)


def report_resolution(result: ResolutionResult, *, logger: CLILogger) -> None:
    """Print the distinct terminal message for ``result``."""

    logger.section("Resolution result")
    iterations = len(result.iterations)
    if result.state is LoopState.SUCCEEDED:
        logger.ok(f"{result.message}: validation passed after {iterations} iteration(s)")
    elif result.state is LoopState.EXHAUSTED:
        reason = result.exhaustion_reason.value if result.exhaustion_reason else "unknown"
        logger.warn(f"{result.message} ({reason}) after {iterations} iteration(s)")
        if result.instructions_path is not None:
            logger.warn(f"Manual steps written to {result.instructions_path}")
    else:
        logger.warn(f"{result.message}: stopped at iteration {iterations}; no further validations were run")
    if result.final_descriptor is not None:
        logger.info(f"Final package descriptor: {result.final_descriptor}")
    for line in result.unmatched:
        logger.debug(f"unmatched diagnostic={line!r}")


__all__ = [
    "CompareReport",
    "build_validator",
    "catalog_source",
    "interactive_approver",
    "load_catalog",
    "report_resolution",
    "run_compare",
    "run_resolution",
]
