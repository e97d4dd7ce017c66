# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Core types for redactory."""

from __future__ import annotations

from redactory.core.types import (
    AnonymityTier,
    DisabledReason,
    EventClass,
    PipelineState,
    TrackingOutcome,
)


__all__ = (
    "AnonymityTier",
    "DisabledReason",
    "EventClass",
    "PipelineState",
    "TrackingOutcome",
)
