# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Custom exceptions raised by promotion operations."""

from __future__ import annotations


class SfPromoteError(RuntimeError):
    """Base class for errors surfaced by the promotion engine."""


class ConfigError(SfPromoteError):
    """Raised when configuration input is invalid."""


class UpstreamQueryError(SfPromoteError):
    """Raised when the artifact type catalog cannot be refreshed from the environment."""


class ManifestError(SfPromoteError):
    """Raised when a package descriptor is malformed."""


class ValidationCallError(SfPromoteError):
    """Raised when the dry-run validation collaborator cannot be invoked or understood."""

    def __init__(self, message: str, *, raw_response: str | None = None) -> None:
        """Initialise the error while retaining the collaborator response.

        Args:
            message: Human-readable description of the failure.
            raw_response: Unparsed output captured from the collaborator, kept for diagnosis.
        """

        super().__init__(message)
        self.raw_response = raw_response


__all__ = [
    "ConfigError",
    "ManifestError",
    "SfPromoteError",
    "UpstreamQueryError",
    "ValidationCallError",
]
