# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render the manual-steps document for non-deployable dependencies."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Final

from .models import DependencyCandidate

TITLE: Final[str] = "Manual steps required"
NO_STEPS_NOTICE: Final[str] = "No manual steps required: every discovered dependency was deployable."
_INTRO: Final[str] = (
    "The dependencies below could not be added to the package automatically.\n"
    "Configure them in the target environment, then validate the package again."
)


def render_instructions(candidates: Iterable[DependencyCandidate]) -> str:
    """Return the manual-steps document grouped by artifact type.

    Deployable candidates are ignored and duplicates of the same artifact keep
    their first occurrence. Types and members are sorted.

    Args:
        candidates: Candidates accumulated across the resolution run.

    Returns:
        str: Plain-text document ending with a newline.
    """

    unique: dict[tuple[str, str], DependencyCandidate] = {}
    for candidate in candidates:
        if candidate.is_deployable:
            continue
        unique.setdefault((candidate.ref.type, candidate.ref.name), candidate)

    lines = [TITLE, "=" * len(TITLE), ""]
    if not unique:
        lines.append(NO_STEPS_NOTICE)
        return "\n".join(lines) + "\n"

    lines.extend([_INTRO, ""])
    current_type: str | None = None
    for (type_name, member), candidate in sorted(unique.items()):
        if type_name != current_type:
            if current_type is not None:
                lines.append("")
            lines.extend([type_name, "-" * len(type_name)])
            current_type = type_name
        lines.append(f"- {member}")
        lines.append(f"  Diagnostic: {candidate.diagnostic}")
        lines.append(f"  Reason: {candidate.reason}")
        if candidate.remediation:
            lines.append(f"  Remediation: {candidate.remediation}")
    return "\n".join(lines) + "\n"


def write_instructions(candidates: Iterable[DependencyCandidate], path: Path) -> Path:
    """Render and write the document to ``path``, replacing any previous copy."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_instructions(candidates), encoding="utf-8")
    return path


__all__ = ["NO_STEPS_NOTICE", "TITLE", "render_instructions", "write_instructions"]
