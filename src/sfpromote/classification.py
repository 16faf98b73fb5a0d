# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Classify discovered dependencies as deployable or requiring manual work.

A dependency is deployable only when its source files exist locally. The
target environment is never queried, so a dependency that already exists
there is still reported as non-deployable when no local copy is present.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .diagnostics import DiagnosticMatch
from .models import ArtifactRef, Classification, DependencyCandidate
from .resolver import PathResolver

MANUAL_REVIEW_REASON: Final[str] = "requires manual review"


@dataclass(frozen=True, slots=True)
class RemediationHint:
    """Reason and remediation template for a non-deployable artifact type."""

    reason: str
    hint: str

    def render(self, ref: ArtifactRef) -> tuple[str, str]:
        """Return the reason and hint with ``{name}`` and ``{parent}`` substituted."""

        values = {"name": ref.name, "parent": ref.parent or ref.name, "type": ref.type}
        return self.reason.format(**values), self.hint.format(**values)


REMEDIATION_HINTS: Final[dict[str, RemediationHint]] = {
    "CustomApplication": RemediationHint(
        reason="application '{name}' has no local source and needs manual app activation in the target environment",
        hint="Setup > App Manager: install or activate '{name}' and assign it to the required profiles "
        "(Salesforce Help: 'Create and Manage Lightning Apps')",
    ),
    "UserPermission": RemediationHint(
        reason="user permission '{name}' depends on a feature or licence that must be enabled in the target",
        hint="Setup > Company Information: confirm the licence granting '{name}' is provisioned, then enable it "
        "on the relevant profiles (Salesforce Help: 'User Permissions and Access')",
    ),
    "CustomObject": RemediationHint(
        reason="object '{name}' has no local source",
        hint="Setup > Object Manager: create '{name}' or retrieve it into the source tree",
    ),
    "CustomField": RemediationHint(
        reason="field '{name}' has no local source",
        hint="Setup > Object Manager > {parent} > Fields & Relationships",
    ),
    "RecordType": RemediationHint(
        reason="record type '{name}' has no local source",
        hint="Setup > Object Manager > {parent} > Record Types",
    ),
    "Layout": RemediationHint(
        reason="page layout '{name}' has no local source",
        hint="Setup > Object Manager > Page Layouts: create or assign the layout",
    ),
    "ApexClass": RemediationHint(
        reason="Apex class '{name}' has no local source",
        hint="Retrieve the class into the source tree or deploy it from its owning package",
    ),
    "ApexTrigger": RemediationHint(
        reason="Apex trigger '{name}' has no local source",
        hint="Retrieve the trigger into the source tree or deploy it from its owning package",
    ),
    "Profile": RemediationHint(
        reason="profile '{name}' has no local source",
        hint="Setup > Profiles: create or clone '{name}' in the target environment",
    ),
    "PermissionSet": RemediationHint(
        reason="permission set '{name}' has no local source",
        hint="Setup > Permission Sets: create '{name}' in the target environment",
    ),
}


class DependencyClassifier:
    """Classify diagnostic matches by looking for source files under ``roots``."""

    def __init__(
        self,
        resolver: PathResolver,
        roots: Sequence[Path],
        *,
        hints: dict[str, RemediationHint] | None = None,
    ) -> None:
        self._resolver = resolver
        self._roots = tuple(roots)
        self._hints = REMEDIATION_HINTS if hints is None else hints

    @property
    def roots(self) -> tuple[Path, ...]:
        """Return the trees searched for dependency sources."""

        return self._roots

    def classify(self, match: DiagnosticMatch) -> DependencyCandidate:
        """Return a :class:`DependencyCandidate` for ``match``.

        Args:
            match: Diagnostic line recognised by the rule table.

        Returns:
            DependencyCandidate: Deployable when source files were located,
            otherwise non-deployable with a reason and optional hint.
        """

        ref = match.ref
        known_convention = self._resolver.catalog.directory_for(ref.type) is not None
        for root in self._roots if known_convention else ():
            sources = self._resolver.locate_sources(ref, root)
            if sources:
                return DependencyCandidate(
                    ref=ref,
                    diagnostic=match.text,
                    classification=Classification.DEPLOYABLE,
                    reason=f"source files found under {root}",
                    rule=match.rule,
                    source_files=tuple(sources),
                )

        template = self._hints.get(ref.type)
        hint: str | None = None
        if template is not None:
            reason, hint = template.render(ref)
        else:
            reason = f"{ref.type} '{ref.name}' has no local source"
        if not known_convention:
            detail = reason if template is not None else f"no known source-file convention for type {ref.type}"
            reason = f"{MANUAL_REVIEW_REASON}: {detail}"
        return DependencyCandidate(
            ref=ref,
            diagnostic=match.text,
            classification=Classification.NON_DEPLOYABLE,
            reason=reason,
            remediation=hint,
            rule=match.rule,
        )


__all__ = [
    "MANUAL_REVIEW_REASON",
    "REMEDIATION_HINTS",
    "DependencyClassifier",
    "RemediationHint",
]
