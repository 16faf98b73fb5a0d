# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared CLI state, logging adapter and error type."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

import typer
from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from ..config import PromoteConfig, load_config
from ..errors import ConfigError, SfPromoteError, ValidationCallError

PACKAGE_LOGGER_NAME: Final[str] = "sfpromote"
_RAW_RESPONSE_LIMIT: Final[int] = 4000

# level -> (emoji prefix, style)
_LEVELS: Final[dict[str, tuple[str, str]]] = {
    "info": ("ℹ️ ", "cyan"),
    "ok": ("✅ ", "green"),
    "warn": ("⚠️ ", "yellow"),
    "fail": ("❌ ", "red"),
}


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Operator-facing console output honouring the emoji and colour options."""

    console: Console
    use_emoji: bool
    use_color: bool = True
    debug_enabled: bool = False
    _key_value_re: re.Pattern[str] = field(default=re.compile(r"([\w-]+)=(\".*?\"|\S+)"), repr=False)

    def fail(self, message: str) -> None:
        """Log a failure message."""

        self._emit("fail", message)

    def warn(self, message: str) -> None:
        """Log a warning message."""

        self._emit("warn", message)

    def ok(self, message: str) -> None:
        """Log a success message."""

        self._emit("ok", message)

    def info(self, message: str) -> None:
        """Log an informational message."""

        self._emit("info", message)

    def section(self, title: str) -> None:
        """Render a section header such as ``Compare`` or ``Resolve``."""

        if self.use_color:
            self.console.print()
            self.console.print(Rule(title))
        else:
            self.console.print(f"\n--- {title} ---")

    def _emit(self, level: str, message: str) -> None:
        prefix, style = _LEVELS[level]
        text = Text(f"{prefix}{message}" if self.use_emoji else message)
        if self.use_color:
            text.stylize(style)
        self.console.print(text)

    def echo(self, message: str) -> None:
        """Write ``message`` to stdout using Typer's echo helper."""

        typer.echo(message)

    def debug(self, message: str) -> None:
        """Emit ``message`` with ``key=value`` highlighting when debug output is enabled."""

        if not self.debug_enabled:
            return
        text = Text("[debug] ", style="bold cyan")
        cursor = 0
        for match in self._key_value_re.finditer(message):
            start, end = match.span()
            if start > cursor:
                text.append(message[cursor:start], style="dim")
            text.append(match.group(1), style="bold magenta")
            text.append("=", style="dim")
            text.append(match.group(2), style="bold green")
            cursor = end
        if cursor < len(message):
            text.append(message[cursor:], style="dim")
        self.console.print(text)


def build_cli_logger(*, emoji: bool, debug: bool = False, no_color: bool = False) -> CLILogger:
    """Return a :class:`CLILogger` bound to a dedicated Rich console.

    Colour is used only when stdout is a terminal and ``no_color`` is unset.
    """

    console = Console(no_color=no_color, highlight=False, soft_wrap=True, emoji=emoji)
    use_color = console.is_terminal and not no_color
    return CLILogger(console=console, use_emoji=emoji, use_color=use_color, debug_enabled=debug)


@dataclass(slots=True)
class CLIState:
    """Global options collected by the application callback."""

    root: Path
    target_org: str | None = None
    api_version: str | None = None
    config_file: Path | None = None
    emoji: bool = True
    verbose: bool = False

    def logger(self) -> CLILogger:
        """Return a console logger honouring the global options."""

        return build_cli_logger(emoji=self.emoji, debug=self.verbose)

    def load_config(self, **section_overrides: dict[str, object]) -> PromoteConfig:
        """Load the layered configuration with global and command overrides applied.

        Raises:
            CLIError: When the configuration cannot be loaded.
        """

        overrides: dict[str, object] = {"target_org": self.target_org, "api_version": self.api_version}
        overrides.update(section_overrides)
        try:
            return load_config(self.root, overrides=overrides, config_file=self.config_file)
        except ConfigError as exc:
            raise CLIError(str(exc)) from exc


def get_state(ctx: typer.Context) -> CLIState:
    """Return the :class:`CLIState` stored by the application callback."""

    state = ctx.obj
    if not isinstance(state, CLIState):
        state = CLIState(root=Path.cwd())
        ctx.obj = state
    return state


def configure_logging(*, verbose: bool) -> None:
    """Stream engine log records to stderr, at debug level when ``verbose``."""

    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for existing in list(logger.handlers):
        if getattr(existing, "_sfpromote_handler", False):
            logger.removeHandler(existing)
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    setattr(handler, "_sfpromote_handler", True)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def cli_errors(logger: CLILogger) -> Iterator[None]:
    """Translate engine failures into a reported message and a non-zero exit."""

    try:
        yield
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except ValidationCallError as exc:
        logger.fail(f"Validation call failed: {exc}")
        if exc.raw_response:
            logger.echo("Raw response:")
            logger.echo(exc.raw_response[:_RAW_RESPONSE_LIMIT])
        raise typer.Exit(code=1) from exc
    except (SfPromoteError, OSError) as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=1) from exc


def require_target_org(config: PromoteConfig) -> str:
    """Return the configured target org alias.

    Raises:
        CLIError: If no target org was configured.
    """

    if not config.target_org:
        raise CLIError("A target org is required: pass --target-org or set target_org in .sfpromote.toml")
    return config.target_org


__all__ = [
    "CLIError",
    "CLILogger",
    "CLIState",
    "build_cli_logger",
    "cli_errors",
    "configure_logging",
    "get_state",
    "require_target_org",
]
