# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import shutil

# Bandit: subprocess usage is intentional; the wrapper never enables ``shell=True``.
import subprocess  # nosec B404
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess
from typing import Final

TIMEOUT_RETURNCODE: Final[int] = 124
_POLL_INTERVAL_SECONDS: Final[float] = 0.25
_TERMINATE_GRACE_SECONDS: Final[float] = 5.0


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Immutable command execution options."""

    cwd: Path | None = None
    timeout: float | None = None


class CommandCancelled(RuntimeError):
    """Raised when a running command is interrupted by the operator."""

    def __init__(self, command: Sequence[str]) -> None:
        super().__init__(f"Command '{command[0]}' was cancelled")
        self.command = tuple(command)


def _ensure_text(value: str | bytes | None) -> str | None:
    """Return ``value`` decoded to text when supplied as ``bytes``."""

    if value is None or isinstance(value, str):
        return value
    return value.decode(errors="ignore")


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Normalise the subprocess argument sequence.

    Args:
        args: Raw command arguments supplied by the caller.

    Returns:
        list[str]: Validated argument list suitable for subprocess execution.

    Raises:
        ValueError: If no arguments are provided.
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
    """

    if not args:
        msg = "subprocess command requires at least one argument"
        raise ValueError(msg)

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        msg = f"Executable '{head}' was not found on PATH"
        raise FileNotFoundError(msg)
    return [resolved, *rest]


def _timeout_result(
    normalized: Sequence[str],
    stdout: str | None,
    stderr: str | None,
    timeout: float | None,
) -> CompletedProcess[str]:
    timeout_msg = f"Command timed out after {timeout:.1f}s" if timeout is not None else "Command timed out"
    combined_stderr = f"{stderr}\n{timeout_msg}" if stderr else timeout_msg
    return subprocess.CompletedProcess(
        args=list(normalized),
        returncode=TIMEOUT_RETURNCODE,
        stdout=stdout or "",
        stderr=combined_stderr,
    )


def run_command(args: Sequence[str], *, options: CommandOptions | None = None) -> CompletedProcess[str]:
    """Execute ``args`` after normalising the executable path.

    Args:
        args: Command and argument sequence to execute.
        options: Options configuring execution semantics.

    Returns:
        CompletedProcess: Subprocess execution metadata. A timeout is reported
        as return code ``124`` rather than raised.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
    """

    normalized = _normalize_args(args)
    resolved_options = options or CommandOptions()

    try:
        completed: CompletedProcess[str] = subprocess.run(  # nosec B603 - argument list, no shell
            normalized,
            cwd=str(resolved_options.cwd) if resolved_options.cwd is not None else None,
            check=False,
            capture_output=True,
            text=True,
            timeout=resolved_options.timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as exc:
        completed = _timeout_result(
            normalized,
            _ensure_text(exc.stdout),
            _ensure_text(exc.stderr),
            resolved_options.timeout,
        )

    return completed


def run_interruptible(
    args: Sequence[str],
    *,
    options: CommandOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> CompletedProcess[str]:
    """Execute ``args`` while honouring operator cancellation.

    The command runs in the background and is polled so that ``cancel_event``
    or a ``KeyboardInterrupt`` terminates it promptly.

    Args:
        args: Command and argument sequence to execute.
        options: Options configuring execution semantics.
        cancel_event: Event that, once set, terminates the running command.

    Returns:
        CompletedProcess: Subprocess execution metadata; timeouts use return code ``124``.

    Raises:
        CommandCancelled: When the command was cancelled before completion.
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
    """

    normalized = _normalize_args(args)
    resolved_options = options or CommandOptions()
    event = cancel_event or threading.Event()

    process = subprocess.Popen(  # nosec B603 - argument list, no shell
        normalized,
        cwd=str(resolved_options.cwd) if resolved_options.cwd is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    outputs: dict[str, str] = {}
    reader = threading.Thread(target=_drain, args=(process, outputs), daemon=True)
    reader.start()
    elapsed = 0.0
    try:
        while reader.is_alive():
            if event.is_set():
                raise CommandCancelled(normalized)
            reader.join(_POLL_INTERVAL_SECONDS)
            elapsed += _POLL_INTERVAL_SECONDS
            if resolved_options.timeout is not None and elapsed >= resolved_options.timeout and reader.is_alive():
                _terminate(process)
                reader.join(_TERMINATE_GRACE_SECONDS)
                return _timeout_result(
                    normalized,
                    outputs.get("stdout"),
                    outputs.get("stderr"),
                    resolved_options.timeout,
                )
    except KeyboardInterrupt as exc:
        _terminate(process)
        raise CommandCancelled(normalized) from exc
    except CommandCancelled:
        _terminate(process)
        raise

    completed = subprocess.CompletedProcess(
        args=normalized,
        returncode=process.returncode if process.returncode is not None else process.wait(),
        stdout=outputs.get("stdout", ""),
        stderr=outputs.get("stderr", ""),
    )
    return completed


def _drain(process: subprocess.Popen[str], outputs: dict[str, str]) -> None:
    stdout, stderr = process.communicate()
    outputs["stdout"] = stdout or ""
    outputs["stderr"] = stderr or ""


def _terminate(process: subprocess.Popen[str]) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        process.kill()


__all__ = [
    "TIMEOUT_RETURNCODE",
    "CommandCancelled",
    "CommandOptions",
    "run_command",
    "run_interruptible",
]
