# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

import logging
import io
from collections.abc import Iterator
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from conftest import ScriptedValidator, failure, success, write_tree
from sfpromote.cli import _services
from sfpromote.cli.app import app
from sfpromote.cli.shared import CLILogger
from sfpromote.errors import ValidationCallError
from sfpromote.manifest import generate, write_descriptor
from sfpromote.models import ArtifactRef, ArtifactSet

CONSOLE_MISSING = "no CustomApplication named Console found"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("SFPROMOTE_TARGET_ORG", raising=False)
    monkeypatch.setattr(_services, "catalog_source", lambda _config: None)
    yield
    # The CLI binds a handler to the runner's stderr, which is closed by now.
    package_logger = logging.getLogger("sfpromote")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


def _use_validator(monkeypatch: pytest.MonkeyPatch, validator: ScriptedValidator) -> None:
    monkeypatch.setattr(_services, "build_validator", lambda _config: validator)


def _manifest(tmp_path: Path) -> Path:
    artifacts = ArtifactSet([ArtifactRef("ApexClass", "Foo")])
    return write_descriptor(generate(artifacts, "60.0"), tmp_path / "pkg" / "package.xml")


def _invoke(tmp_path: Path, *args: str, input: str | None = None):  # type: ignore[no-untyped-def]
    runner = CliRunner()
    return runner.invoke(app, ["--root", str(tmp_path), "--no-emoji", *args], input=input)


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.output.startswith("sfpromote ")


def test_compare_writes_descriptors(tmp_path: Path) -> None:
    source = write_tree(tmp_path / "source", {"classes/Foo.cls": "class Foo {}", "classes/Keep.cls": "same"})
    target = write_tree(tmp_path / "target", {"classes/Keep.cls": "same", "classes/Bar.cls": "class Bar {}"})

    result = _invoke(tmp_path, "compare", str(source), str(target), "--jobs", "2")

    assert result.exit_code == 0, result.output
    package_dir = tmp_path / ".sfpromote" / "build" / "package"
    assert "<members>Foo</members>" in (package_dir / "package.xml").read_text(encoding="utf-8")
    assert "<members>Bar</members>" in (package_dir / "destructiveChanges.xml").read_text(encoding="utf-8")
    assert (package_dir / "classes" / "Foo.cls").is_file()
    assert "Additive: 1 artifact(s)" in result.output
    assert "stale" in result.output


def test_compare_without_removals_skips_destructive_file(tmp_path: Path) -> None:
    source = write_tree(tmp_path / "source", {"classes/Foo.cls": "class Foo {}", "mysteryTypes/x.xml": "x"})
    target = write_tree(tmp_path / "target", {})
    output = tmp_path / "out"

    result = _invoke(tmp_path, "compare", str(source), str(target), "--output", str(output))

    assert result.exit_code == 0, result.output
    assert (output / "package" / "package.xml").is_file()
    assert not (output / "package" / "destructiveChanges.xml").exists()
    assert "Destructive: none" in result.output
    assert "mysteryTypes" in result.output


def test_compare_missing_tree_fails(tmp_path: Path) -> None:
    target = write_tree(tmp_path / "target", {})

    result = _invoke(tmp_path, "compare", str(tmp_path / "absent"), str(target))

    assert result.exit_code == 1
    assert "Metadata tree not found" in result.output


def test_resolve_requires_target_org(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "resolve", str(_manifest(tmp_path)), "--yes")

    assert result.exit_code == 1
    assert "target org is required" in result.output


def test_resolve_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    validator = ScriptedValidator([success()])
    _use_validator(monkeypatch, validator)

    result = _invoke(tmp_path, "--target-org", "dev", "resolve", str(_manifest(tmp_path)), "--yes")

    assert result.exit_code == 0, result.output
    assert "Succeeded" in result.output
    assert (tmp_path / ".sfpromote" / "build" / "package.xml").is_file()
    assert "<members>Foo</members>" in validator.manifests[0]


def test_resolve_prompts_before_extending(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_tree(tmp_path, {"applications/Console.app-meta.xml": "<CustomApplication/>"})
    validator = ScriptedValidator([failure(CONSOLE_MISSING), success()])
    _use_validator(monkeypatch, validator)

    result = _invoke(tmp_path, "--target-org", "dev", "resolve", str(_manifest(tmp_path)), input="y\n")

    assert result.exit_code == 0, result.output
    assert "Start iteration 2?" in result.output
    assert "CustomApplication:Console" in result.output
    assert "Succeeded" in result.output
    assert (tmp_path / "pkg" / "applications" / "Console.app-meta.xml").is_file()


def test_resolve_denied_prompt_cancels(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_tree(tmp_path, {"applications/Console.app-meta.xml": "<CustomApplication/>"})
    validator = ScriptedValidator([failure(CONSOLE_MISSING), success()])
    _use_validator(monkeypatch, validator)

    result = _invoke(tmp_path, "--target-org", "dev", "resolve", str(_manifest(tmp_path)), input="n\n")

    assert result.exit_code == 0, result.output
    assert "UserCancelled" in result.output
    assert len(validator.manifests) == 1


def test_resolve_exhaustion_writes_manual_steps(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_validator(monkeypatch, ScriptedValidator([failure(CONSOLE_MISSING)]))

    result = _invoke(
        tmp_path,
        "--target-org",
        "dev",
        "resolve",
        str(_manifest(tmp_path)),
        "--yes",
        "--max-iterations",
        "3",
    )

    assert result.exit_code == 0, result.output
    assert "Exhausted - manual steps required" in result.output
    steps = tmp_path / ".sfpromote" / "build" / "MANUAL_STEPS.txt"
    assert "Console" in steps.read_text(encoding="utf-8")


def test_resolve_reports_raw_response_on_call_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_validator(monkeypatch, ScriptedValidator([ValidationCallError("garbled", raw_response="<html>oops</html>")]))

    result = _invoke(tmp_path, "--target-org", "dev", "resolve", str(_manifest(tmp_path)), "--yes")

    assert result.exit_code == 1
    assert "Validation call failed: garbled" in result.output
    assert "<html>oops</html>" in result.output


def test_promote_identical_trees_skips_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    validator = ScriptedValidator([success()])
    _use_validator(monkeypatch, validator)
    files = {"classes/Foo.cls": "same"}
    source = write_tree(tmp_path / "source", files)
    target = write_tree(tmp_path / "target", files)

    result = _invoke(tmp_path, "--target-org", "dev", "promote", str(source), str(target), "--yes")

    assert result.exit_code == 0, result.output
    assert "nothing to promote" in result.output
    assert validator.manifests == []


def test_promote_runs_compare_then_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    validator = ScriptedValidator([failure(CONSOLE_MISSING)])
    _use_validator(monkeypatch, validator)
    source = write_tree(tmp_path / "source", {"classes/Foo.cls": "class Foo {}"})
    target = write_tree(tmp_path / "target", {})

    result = _invoke(tmp_path, "--target-org", "dev", "promote", str(source), str(target), "--yes")

    assert result.exit_code == 0, result.output
    assert "<members>Foo</members>" in validator.manifests[0]
    assert "Exhausted" in result.output
    assert (tmp_path / ".sfpromote" / "build" / "MANUAL_STEPS.txt").is_file()


def test_catalog_show_defaults(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "catalog", "show")

    assert result.exit_code == 0, result.output
    assert "built-in defaults" in result.output
    assert "ApexClass" in result.output


def test_catalog_refresh_requires_target_org(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "catalog", "refresh")

    assert result.exit_code == 1
    assert "target org is required" in result.output


def test_invalid_configuration_exits_nonzero(tmp_path: Path) -> None:
    (tmp_path / ".sfpromote.toml").write_text('api_version = "latest"\n', encoding="utf-8")

    result = _invoke(tmp_path, "catalog", "show")

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_promote_keeps_package_directory_self_contained(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_validator(monkeypatch, ScriptedValidator([failure(CONSOLE_MISSING), success()]))
    source = write_tree(
        tmp_path / "source",
        {"classes/Foo.cls": "class Foo {}", "applications/Console.app-meta.xml": "<CustomApplication/>"},
    )
    target = write_tree(tmp_path / "target", {"applications/Console.app-meta.xml": "<CustomApplication/>"})

    result = _invoke(tmp_path, "--target-org", "dev", "promote", str(source), str(target), "--yes")

    assert result.exit_code == 0, result.output
    package_dir = tmp_path / ".sfpromote" / "build" / "package"
    manifest = (package_dir / "package.xml").read_text(encoding="utf-8")
    assert "<members>Console</members>" in manifest
    assert "<members>Foo</members>" in manifest
    assert (package_dir / "applications" / "Console.app-meta.xml").is_file()


@pytest.mark.parametrize(
    ("use_emoji", "expected"),
    [(True, "✅ done\n⚠️ careful\n"), (False, "done\ncareful\n")],
)
def test_cli_logger_prefixes_follow_emoji_option(use_emoji: bool, expected: str) -> None:
    buffer = io.StringIO()
    logger = CLILogger(console=Console(file=buffer, width=120), use_emoji=use_emoji, use_color=False)

    logger.ok("done")
    logger.warn("careful")

    assert buffer.getvalue() == expected


def test_cli_logger_plain_section_header() -> None:
    buffer = io.StringIO()
    logger = CLILogger(console=Console(file=buffer, width=120), use_emoji=False, use_color=False)

    logger.section("Resolve")

    assert buffer.getvalue() == "\n--- Resolve ---\n"
