# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Configuration for redactory."""

from __future__ import annotations

from redactory.config.settings import (
    DEFAULT_POSTHOG_HOST,
    TelemetrySettings,
    get_settings,
    reset_settings,
)


__all__ = ("DEFAULT_POSTHOG_HOST", "TelemetrySettings", "get_settings", "reset_settings")
