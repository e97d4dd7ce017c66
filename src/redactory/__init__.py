# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""redactory: privacy-preserving event telemetry for client applications."""

from __future__ import annotations

from redactory.core.types import AnonymityTier, EventClass, PipelineState, TrackingOutcome
from redactory.exceptions import ConfigurationError, DigestError, RedactoryError, SinkError
from redactory.telemetry.capture import AnalyticsPipeline


__version__ = "0.1.0"

__all__ = (
    "AnalyticsPipeline",
    "AnonymityTier",
    "ConfigurationError",
    "DigestError",
    "EventClass",
    "PipelineState",
    "RedactoryError",
    "SinkError",
    "TrackingOutcome",
    "__version__",
)
