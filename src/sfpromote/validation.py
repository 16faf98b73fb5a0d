# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Dry-run validation collaborators."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from .errors import ValidationCallError
from .models import ValidationOutcome
from .process import TIMEOUT_RETURNCODE, CommandOptions, run_interruptible

LOGGER = logging.getLogger(__name__)


class Validator(Protocol):
    """Submit a package descriptor for a non-mutating validation."""

    def validate(
        self,
        manifest_path: Path,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ValidationOutcome:
        """Validate the descriptor at ``manifest_path`` against the target environment.

        Raises:
            ValidationCallError: When the call cannot be made or its response understood.
            CommandCancelled: When ``cancel_event`` fires during the call.
        """
        ...


class SfCliValidator:
    """Run ``sf project deploy validate`` and normalise its JSON response."""

    def __init__(
        self,
        target_org: str,
        *,
        executable: str = "sf",
        test_level: str = "NoTestRun",
        wait_minutes: int = 33,
        api_version: str | None = None,
        cwd: Path | None = None,
    ) -> None:
        self._target_org = target_org
        self._executable = executable
        self._test_level = test_level
        self._wait_minutes = wait_minutes
        self._api_version = api_version
        self._cwd = cwd

    def command(self, manifest_path: Path) -> list[str]:
        """Return the validate-only command for ``manifest_path``."""

        cmd = [
            self._executable,
            "project",
            "deploy",
            "validate",
            "--manifest",
            str(manifest_path),
            "--target-org",
            self._target_org,
            "--test-level",
            self._test_level,
            "--wait",
            str(self._wait_minutes),
            "--json",
        ]
        if self._api_version:
            cmd.extend(["--api-version", self._api_version])
        return cmd

    def validate(
        self,
        manifest_path: Path,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ValidationOutcome:
        """Run the validation and return its normalised outcome.

        Args:
            manifest_path: Package descriptor to validate.
            timeout: Seconds after which the call is abandoned.
            cancel_event: Event that interrupts the call when set.

        Returns:
            ValidationOutcome: Parsed success or failure result.

        Raises:
            ValidationCallError: When the executable is missing, the call times
                out, or the response cannot be parsed.
            CommandCancelled: When the call is interrupted.
        """

        options = CommandOptions(cwd=self._cwd, timeout=timeout)
        try:
            completed = run_interruptible(self.command(manifest_path), options=options, cancel_event=cancel_event)
        except (FileNotFoundError, PermissionError) as exc:
            raise ValidationCallError(f"Unable to launch validation: {exc}") from exc
        if completed.returncode == TIMEOUT_RETURNCODE and timeout is not None:
            raise ValidationCallError(
                f"Validation did not finish within {timeout:.0f}s",
                raw_response=completed.stdout or completed.stderr,
            )
        return parse_validation_response(completed.stdout, returncode=completed.returncode, stderr=completed.stderr)


def parse_validation_response(stdout: str, *, returncode: int = 0, stderr: str | None = None) -> ValidationOutcome:
    """Parse ``sf project deploy validate --json`` output.

    Args:
        stdout: JSON document printed by the command.
        returncode: Exit status of the command.
        stderr: Captured standard error, retained when parsing fails.

    Returns:
        ValidationOutcome: Normalised result with diagnostics and counters.

    Raises:
        ValidationCallError: If the output is not a JSON object.
    """

    raw = stdout or ""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationCallError(
            f"Unparseable validation response (exit status {returncode})",
            raw_response=raw or stderr,
        ) from exc
    if not isinstance(payload, Mapping):
        raise ValidationCallError("Validation response must be a JSON object", raw_response=raw)

    status = _as_int(payload.get("status"), default=returncode)
    result = payload.get("result")
    if not isinstance(result, Mapping) and (status != 0 or returncode != 0):
        message = payload.get("message") or payload.get("name") or f"exit status {returncode}"
        raise ValidationCallError(f"Validation call failed: {message}", raw_response=raw)
    result_map: Mapping[str, Any] = result if isinstance(result, Mapping) else {}
    success = bool(result_map.get("success")) and status == 0 and returncode == 0

    diagnostics: list[str] = []
    details = result_map.get("details")
    if isinstance(details, Mapping):
        diagnostics.extend(_problems(details.get("componentFailures")))
        diagnostics.extend(_test_failures(details.get("runTestResult")))
    if not success:
        message = payload.get("message")
        if isinstance(message, str) and message.strip() and message.strip() not in diagnostics:
            diagnostics.append(message.strip())

    job_id = result_map.get("id")
    outcome = ValidationOutcome(
        success=success,
        status=status,
        diagnostics=tuple(diagnostics),
        components_deployed=_as_int(result_map.get("numberComponentsDeployed")),
        components_total=_as_int(result_map.get("numberComponentsTotal")),
        component_errors=_as_int(result_map.get("numberComponentErrors")),
        tests_completed=_as_int(result_map.get("numberTestsCompleted")),
        tests_total=_as_int(result_map.get("numberTestsTotal")),
        test_errors=_as_int(result_map.get("numberTestErrors")),
        job_id=job_id if isinstance(job_id, str) else None,
        raw=raw,
    )
    LOGGER.debug("Validation finished success=%s status=%s diagnostics=%d", success, status, len(diagnostics))
    return outcome


def _as_list(value: object) -> Sequence[object]:
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, list):
        return value
    return []


def _problems(failures: object) -> list[str]:
    problems: list[str] = []
    for failure in _as_list(failures):
        if not isinstance(failure, Mapping):
            continue
        problem = failure.get("problem")
        if isinstance(problem, str) and problem.strip():
            problems.append(problem.strip())
    return problems


def _test_failures(run_test_result: object) -> list[str]:
    if not isinstance(run_test_result, Mapping):
        return []
    messages: list[str] = []
    for failure in _as_list(run_test_result.get("failures")):
        if not isinstance(failure, Mapping):
            continue
        message = failure.get("message")
        if isinstance(message, str) and message.strip():
            name = failure.get("name")
            prefix = f"{name}: " if isinstance(name, str) and name else ""
            messages.append(f"{prefix}{message.strip()}")
    return messages


def _as_int(value: object, *, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return default


__all__ = ["SfCliValidator", "Validator", "parse_validation_response"]
