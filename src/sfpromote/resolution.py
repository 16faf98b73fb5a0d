# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bounded dependency-resolution loop driven by dry-run validations."""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

from .classification import DependencyClassifier
from .constants import (
    DEFAULT_API_VERSION,
    DEFAULT_MAX_ITERATIONS,
    INSTRUCTIONS_FILE_NAME,
    ITERATIONS_DIR_NAME,
    PACKAGE_FILE_NAME,
)
from .diagnostics import DEFAULT_RULES, DiagnosticRule, parse_diagnostics
from .instructions import write_instructions
from .manifest import generate
from .models import ArtifactRef, ArtifactSet, DependencyCandidate, IterationRecord, ValidationOutcome
from .process import CommandCancelled
from .validation import Validator

LOGGER = logging.getLogger(__name__)

Approver = Callable[[int, Sequence[ArtifactRef]], bool]
StateListener = Callable[["LoopState", int], None]

_ITERATION_FILE_TEMPLATE: Final[str] = "package.{number:02d}.xml"


def always_approve(_iteration: int, _additions: Sequence[ArtifactRef]) -> bool:
    """Approve every extension request."""

    return True


def always_deny(_iteration: int, _additions: Sequence[ArtifactRef]) -> bool:
    """Deny every extension request."""

    return False


class LoopState(str, Enum):
    """States of the resolution state machine."""

    SEEDING = "seeding"
    VALIDATING = "validating"
    EXTENDING = "extending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    USER_CANCELLED = "user_cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` for states that end the loop."""

        return self in {LoopState.SUCCEEDED, LoopState.EXHAUSTED, LoopState.USER_CANCELLED}


class ExhaustionReason(str, Enum):
    """Why a run ended in :attr:`LoopState.EXHAUSTED`."""

    ITERATION_BOUND_EXCEEDED = "iteration_bound_exceeded"
    NO_DEPLOYABLE_DEPENDENCIES = "no_deployable_dependencies"


_MESSAGES: Final[dict[LoopState, str]] = {
    LoopState.SUCCEEDED: "Succeeded",
    LoopState.EXHAUSTED: "Exhausted - manual steps required",
    LoopState.USER_CANCELLED: "UserCancelled",
}


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Terminal outcome of a resolution run."""

    state: LoopState
    iterations: tuple[IterationRecord, ...]
    final_artifacts: ArtifactSet
    final_descriptor: Path | None
    instructions_path: Path | None = None
    exhaustion_reason: ExhaustionReason | None = None
    non_deployable: tuple[DependencyCandidate, ...] = ()
    unmatched: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        """Return the distinct user-facing label of the terminal state."""

        return _MESSAGES[self.state]

    @property
    def last_outcome(self) -> ValidationOutcome | None:
        """Return the outcome of the final validation, if one completed."""

        return self.iterations[-1].outcome if self.iterations else None


@dataclass(slots=True)
class _RunState:
    """Accumulators owned by a single :meth:`ResolutionLoop.run` call."""

    history: list[IterationRecord]
    non_deployable: dict[ArtifactRef, DependencyCandidate]
    unmatched: list[str]


class ResolutionLoop:
    """Grow a manifest with discovered dependencies until validation succeeds.

    Every iteration writes a fresh descriptor and validates it. Failure
    diagnostics are matched against the rule table; deployable dependencies
    that are not yet in the manifest extend the next iteration once the
    approver agrees. The run ends when validation succeeds, when no new
    deployable dependency is found, when the iteration bound is reached, or
    when the operator cancels.
    """

    def __init__(
        self,
        validator: Validator,
        classifier: DependencyClassifier,
        *,
        work_dir: Path,
        approver: Approver = always_approve,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float | None = None,
        package_root: Path | None = None,
        rules: Sequence[DiagnosticRule] = DEFAULT_RULES,
        listener: StateListener | None = None,
    ) -> None:
        """Configure the loop.

        Args:
            validator: Dry-run validation collaborator.
            classifier: Deployability classifier for matched diagnostics.
            work_dir: Directory receiving iteration descriptors and final outputs.
            approver: Callback consulted before each extension.
            max_iterations: Inclusive iteration bound.
            api_version: Version tag written into every descriptor.
            timeout: Per-validation timeout in seconds.
            package_root: Directory receiving copies of deployable dependency sources.
            rules: Ordered diagnostic rule table.
            listener: Optional callback notified on every state transition.

        Raises:
            ValueError: If ``max_iterations`` is less than one.
        """

        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._validator = validator
        self._classifier = classifier
        self._work_dir = work_dir
        self._approver = approver
        self._max_iterations = max_iterations
        self._api_version = api_version
        self._timeout = timeout
        self._package_root = package_root
        self._rules = tuple(rules)
        self._listener = listener

    @property
    def iterations_dir(self) -> Path:
        """Return the directory holding per-iteration descriptors."""

        return self._work_dir / ITERATIONS_DIR_NAME

    def run(self, initial: ArtifactSet, *, cancel_event: threading.Event | None = None) -> ResolutionResult:
        """Execute the loop starting from ``initial``.

        Args:
            initial: Iteration-one manifest, used verbatim.
            cancel_event: Event that cancels the run when set.

        Returns:
            ResolutionResult: Terminal state with the iteration history.

        Raises:
            ValidationCallError: When the validator cannot be invoked or its
                response cannot be parsed. Descriptors already written stay on disk.
            FileExistsError: If an iteration descriptor would overwrite an existing file.
        """

        self._notify(LoopState.SEEDING, 0)
        self._archive_previous_iterations()
        run = _RunState(history=[], non_deployable={}, unmatched=[])
        current = initial.copy()
        iteration = 1
        while True:
            descriptor_path = self._write_iteration(iteration, current)
            self._notify(LoopState.VALIDATING, iteration)
            try:
                if cancel_event is not None and cancel_event.is_set():
                    raise CommandCancelled(["validate"])
                outcome = self._validator.validate(
                    descriptor_path,
                    timeout=self._timeout,
                    cancel_event=cancel_event,
                )
            except (CommandCancelled, KeyboardInterrupt):
                LOGGER.info("Validation of iteration %d cancelled", iteration)
                run.history.append(IterationRecord(iteration, current.copy(), descriptor_path, None))
                return self._finish(LoopState.USER_CANCELLED, current, run)

            if outcome.success:
                run.history.append(IterationRecord(iteration, current.copy(), descriptor_path, outcome))
                return self._finish(LoopState.SUCCEEDED, current, run)

            candidates, unmatched = self._discover(outcome)
            run.unmatched.extend(unmatched)
            for candidate in candidates:
                if not candidate.is_deployable:
                    run.non_deployable.setdefault(candidate.ref, candidate)
            deployable = [candidate for candidate in candidates if candidate.is_deployable]
            additions = current.missing(candidate.ref for candidate in deployable)

            reason: ExhaustionReason | None = None
            if not additions:
                reason = ExhaustionReason.NO_DEPLOYABLE_DEPENDENCIES
            elif iteration >= self._max_iterations:
                reason = ExhaustionReason.ITERATION_BOUND_EXCEEDED
            if reason is not None:
                run.history.append(
                    IterationRecord(iteration, current.copy(), descriptor_path, outcome, candidates, unmatched),
                )
                return self._finish(LoopState.EXHAUSTED, current, run, reason=reason)

            self._notify(LoopState.EXTENDING, iteration)
            if not self._approver(iteration + 1, additions):
                run.history.append(
                    IterationRecord(iteration, current.copy(), descriptor_path, outcome, candidates, unmatched),
                )
                return self._finish(LoopState.USER_CANCELLED, current, run)

            run.history.append(
                IterationRecord(
                    iteration,
                    current.copy(),
                    descriptor_path,
                    outcome,
                    candidates,
                    unmatched,
                    tuple(additions),
                ),
            )
            self._copy_sources(deployable)
            current = current.union(additions)
            iteration += 1

    def _discover(self, outcome: ValidationOutcome) -> tuple[tuple[DependencyCandidate, ...], tuple[str, ...]]:
        matches, unmatched = parse_diagnostics(outcome.diagnostics, self._rules)
        seen: set[ArtifactRef] = set()
        candidates: list[DependencyCandidate] = []
        for match in matches:
            if match.ref in seen:
                continue
            seen.add(match.ref)
            candidates.append(self._classifier.classify(match))
        for line in unmatched:
            LOGGER.debug("Unmatched diagnostic: %s", line)
        return tuple(candidates), tuple(unmatched)

    def _write_iteration(self, iteration: int, artifacts: ArtifactSet) -> Path:
        path = self.iterations_dir / _ITERATION_FILE_TEMPLATE.format(number=iteration)
        path.parent.mkdir(parents=True, exist_ok=True)
        descriptor = generate(artifacts, self._api_version)
        with path.open("xb") as handle:
            handle.write(descriptor.encode())
        LOGGER.debug("Wrote iteration %d descriptor to %s", iteration, path)
        return path

    def _archive_previous_iterations(self) -> None:
        directory = self.iterations_dir
        if not directory.is_dir() or not any(directory.iterdir()):
            return
        suffix = 1
        while (archived := directory.with_name(f"{ITERATIONS_DIR_NAME}.{suffix}")).exists():
            suffix += 1
        directory.rename(archived)
        LOGGER.info("Archived previous iteration descriptors to %s", archived)

    def _copy_sources(self, candidates: Sequence[DependencyCandidate]) -> None:
        if self._package_root is None:
            return
        for candidate in candidates:
            for source in candidate.source_files:
                relative = self._relative_to_roots(source)
                if relative is None:
                    continue
                destination = self._package_root / relative
                if destination.exists():
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)

    def _relative_to_roots(self, path: Path) -> Path | None:
        for root in self._classifier.roots:
            if path.is_relative_to(root):
                return path.relative_to(root)
        return None

    def _finish(
        self,
        state: LoopState,
        current: ArtifactSet,
        run: _RunState,
        *,
        reason: ExhaustionReason | None = None,
    ) -> ResolutionResult:
        final_descriptor: Path | None = None
        if state is not LoopState.USER_CANCELLED and run.history:
            final_descriptor = self._work_dir / PACKAGE_FILE_NAME
            shutil.copyfile(run.history[-1].descriptor_path, final_descriptor)
            if self._package_root is not None:
                self._package_root.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(run.history[-1].descriptor_path, self._package_root / PACKAGE_FILE_NAME)
        instructions_path: Path | None = None
        if state is LoopState.EXHAUSTED:
            instructions_path = write_instructions(
                run.non_deployable.values(),
                self._work_dir / INSTRUCTIONS_FILE_NAME,
            )
        self._notify(state, len(run.history))
        return ResolutionResult(
            state=state,
            iterations=tuple(run.history),
            final_artifacts=current.copy(),
            final_descriptor=final_descriptor,
            instructions_path=instructions_path,
            exhaustion_reason=reason,
            non_deployable=tuple(run.non_deployable.values()),
            unmatched=tuple(run.unmatched),
        )

    def _notify(self, state: LoopState, iteration: int) -> None:
        LOGGER.debug("Resolution state %s (iteration %d)", state.value, iteration)
        if self._listener is not None:
            self._listener(state, iteration)


__all__ = [
    "Approver",
    "ExhaustionReason",
    "LoopState",
    "ResolutionLoop",
    "ResolutionResult",
    "always_approve",
    "always_deny",
]
