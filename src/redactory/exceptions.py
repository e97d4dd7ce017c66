# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Exception hierarchy for redactory.

All redactory exceptions inherit from RedactoryError. None of them is meant to
reach code that calls the tracking API: the pipeline catches them and turns
them into a dropped event.
"""

from __future__ import annotations

from typing import Any


class RedactoryError(Exception):
    """Base exception for all redactory errors.

    Provides structured error information including details and suggestions
    for resolution.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        """Initialize redactory error.

        Args:
            message: Human-readable error message
            details: Additional context about the error
            suggestions: Actionable suggestions for resolving the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestions = suggestions or []

    def __str__(self) -> str:
        """Return descriptive error message with context details."""
        parts = [self.message]
        if self.details:
            parts.append(f"({', '.join(f'{k}: {v}' for k, v in self.details.items())})")
        return " ".join(parts)


class ConfigurationError(RedactoryError):
    """Configuration and settings errors.

    Raised when telemetry settings are invalid, such as a malformed host URL.
    A *missing* configuration is not an error; it disables tracking.
    """


class DigestError(RedactoryError):
    """An identifier could not be hashed.

    The enclosing track or identify call must abort without sending anything.
    The raw value is never substituted for its digest.
    """


class SinkError(RedactoryError):
    """The telemetry sink rejected an operation."""


__all__ = ("ConfigurationError", "DigestError", "RedactoryError", "SinkError")
