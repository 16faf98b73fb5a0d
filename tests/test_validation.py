# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from sfpromote import validation as validation_module
from sfpromote.errors import ValidationCallError
from sfpromote.process import TIMEOUT_RETURNCODE, CommandCancelled
from sfpromote.validation import SfCliValidator, parse_validation_response


def _response(*, success: bool, status: int = 0, details: dict | None = None, message: str | None = None) -> str:
    payload: dict[str, object] = {
        "status": status,
        "result": {
            "id": "0Af000000000001",
            "success": success,
            "numberComponentsDeployed": 3,
            "numberComponentsTotal": 4,
            "numberComponentErrors": 0 if success else 1,
            "details": details or {},
        },
    }
    if message is not None:
        payload["message"] = message
    return json.dumps(payload)


def test_parse_success() -> None:
    outcome = parse_validation_response(_response(success=True))

    assert outcome.success
    assert outcome.diagnostics == ()
    assert outcome.components_deployed == 3
    assert outcome.components_total == 4
    assert outcome.job_id == "0Af000000000001"


def test_parse_failure_collects_component_and_test_problems() -> None:
    details = {
        "componentFailures": [
            {"problem": "no CustomApplication named Console found"},
            {"problem": "  "},
        ],
        "runTestResult": {"failures": {"name": "FooTest", "message": "Assertion failed"}},
    }

    outcome = parse_validation_response(
        _response(success=False, status=1, details=details, message="Deploy failed."),
        returncode=1,
    )

    assert not outcome.success
    assert outcome.status == 1
    assert outcome.diagnostics == (
        "no CustomApplication named Console found",
        "FooTest: Assertion failed",
        "Deploy failed.",
    )
    assert outcome.component_errors == 1


def test_single_component_failure_object_is_accepted() -> None:
    details = {"componentFailures": {"problem": "Class PaymentService not found"}}

    outcome = parse_validation_response(_response(success=False, details=details), returncode=1)

    assert outcome.diagnostics == ("Class PaymentService not found",)


def test_success_flag_requires_zero_exit_status() -> None:
    assert not parse_validation_response(_response(success=True), returncode=1).success


@pytest.mark.parametrize("stdout", ["", "Error: org expired", "[1, 2]"])
def test_unparseable_response_keeps_raw_text(stdout: str) -> None:
    with pytest.raises(ValidationCallError) as excinfo:
        parse_validation_response(stdout, returncode=1, stderr="stderr text")

    assert excinfo.value.raw_response in {stdout, "stderr text"}


def test_validator_builds_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: dict[str, object] = {}

    def fake_run(cmd, *, options=None, cancel_event=None):  # type: ignore[no-untyped-def]
        seen["cmd"] = list(cmd)
        seen["timeout"] = options.timeout
        return subprocess.CompletedProcess(cmd, 0, _response(success=True), "")

    monkeypatch.setattr(validation_module, "run_interruptible", fake_run)
    manifest = tmp_path / "package.xml"
    validator = SfCliValidator("dev", test_level="RunLocalTests", wait_minutes=10, api_version="61.0", cwd=tmp_path)

    assert validator.validate(manifest, timeout=30).success
    assert seen["cmd"] == [
        "sf",
        "project",
        "deploy",
        "validate",
        "--manifest",
        str(manifest),
        "--target-org",
        "dev",
        "--test-level",
        "RunLocalTests",
        "--wait",
        "10",
        "--json",
        "--api-version",
        "61.0",
    ]
    assert seen["timeout"] == 30


def test_validator_timeout_raises(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd, *, options=None, cancel_event=None):  # type: ignore[no-untyped-def]
        return subprocess.CompletedProcess(cmd, TIMEOUT_RETURNCODE, "partial", "Command timed out")

    monkeypatch.setattr(validation_module, "run_interruptible", fake_run)

    with pytest.raises(ValidationCallError) as excinfo:
        SfCliValidator("dev").validate(tmp_path / "package.xml", timeout=5)

    assert excinfo.value.raw_response == "partial"


def test_validator_missing_executable(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd, *, options=None, cancel_event=None):  # type: ignore[no-untyped-def]
        raise FileNotFoundError("Executable 'sf' was not found on PATH")

    monkeypatch.setattr(validation_module, "run_interruptible", fake_run)

    with pytest.raises(ValidationCallError, match="Unable to launch"):
        SfCliValidator("dev").validate(tmp_path / "package.xml")


def test_validator_propagates_cancellation(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd, *, options=None, cancel_event=None):  # type: ignore[no-untyped-def]
        raise CommandCancelled(cmd)

    monkeypatch.setattr(validation_module, "run_interruptible", fake_run)

    with pytest.raises(CommandCancelled):
        SfCliValidator("dev").validate(tmp_path / "package.xml")


def test_error_payload_without_result_is_a_call_error() -> None:
    raw = json.dumps({"status": 1, "name": "NoOrgFound", "message": "No authorization information found for dev."})

    with pytest.raises(ValidationCallError, match="No authorization") as excinfo:
        parse_validation_response(raw, returncode=1)

    assert excinfo.value.raw_response == raw
