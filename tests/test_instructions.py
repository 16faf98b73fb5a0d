# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

from pathlib import Path

from sfpromote.instructions import NO_STEPS_NOTICE, TITLE, render_instructions, write_instructions
from sfpromote.models import ArtifactRef, Classification, DependencyCandidate


def _candidate(
    type_name: str,
    name: str,
    *,
    deployable: bool = False,
    remediation: str | None = None,
    diagnostic: str = "diag",
) -> DependencyCandidate:
    return DependencyCandidate(
        ref=ArtifactRef(type_name, name),
        diagnostic=diagnostic,
        classification=Classification.DEPLOYABLE if deployable else Classification.NON_DEPLOYABLE,
        reason=f"{name} has no local source",
        remediation=remediation,
    )


def test_renders_grouped_sorted_sections() -> None:
    text = render_instructions(
        [
            _candidate("UserPermission", "ManageSandboxes"),
            _candidate(
                "CustomApplication",
                "Console",
                remediation="Setup > App Manager",
                diagnostic="no CustomApplication named Console found",
            ),
            _candidate("ApexClass", "Deployable", deployable=True),
            _candidate("CustomApplication", "Console", diagnostic="duplicate"),
        ],
    )

    assert text.startswith(f"{TITLE}\n{'=' * len(TITLE)}\n")
    assert text.index("CustomApplication\n-----------------") < text.index("UserPermission\n--------------")
    assert "- Console\n  Diagnostic: no CustomApplication named Console found\n" in text
    assert "  Remediation: Setup > App Manager\n" in text
    assert "duplicate" not in text
    assert "Deployable" not in text
    assert text.count("- ManageSandboxes") == 1
    assert text.endswith("\n")


def test_entries_without_remediation_omit_the_line() -> None:
    text = render_instructions([_candidate("UserPermission", "ManageSandboxes")])

    assert "Reason: ManageSandboxes has no local source" in text
    assert "Remediation:" not in text


def test_empty_input_renders_notice() -> None:
    assert NO_STEPS_NOTICE in render_instructions([])
    assert NO_STEPS_NOTICE in render_instructions([_candidate("ApexClass", "Foo", deployable=True)])


def test_write_instructions_replaces_previous_file(tmp_path: Path) -> None:
    path = tmp_path / "out" / "MANUAL_STEPS.txt"
    write_instructions([_candidate("Layout", "Old")], path)

    write_instructions([_candidate("Layout", "New")], path)

    content = path.read_text(encoding="utf-8")
    assert "- New" in content
    assert "- Old" not in content
