# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Privacy-preserving telemetry pipeline.

Decides per event whether data may leave the device, redacts or hashes
identifying fragments of the current location, and forwards the sanitized
event to PostHog.

Key Principles:
- Nothing is sent under a do-not-track signal or without configuration
- Anonymous tier: no identifiers at all, hashed or not
- Pseudonymous tier: stable hashed identifiers, only with consent
- Fail-safe (errors don't affect application)

Example:
    >>> from redactory.telemetry import AnalyticsPipeline
    >>> pipeline = AnalyticsPipeline.from_settings()
    >>> await pipeline.init(only_track_anonymous_events=True)
    >>> await pipeline.track_anonymous_event("onboarding_login_begin")
"""

from __future__ import annotations

from redactory.telemetry.capture import AnalyticsPipeline, static_location
from redactory.telemetry.context import RedactedContextCache
from redactory.telemetry.events import (
    AnonymousEvent,
    OnboardingLoginBegin,
    PseudonymousEvent,
    RoomEvent,
    TelemetryEvent,
)
from redactory.telemetry.hashing import HashingService, hash_hex
from redactory.telemetry.policy import AnonymityPolicy, InitResult
from redactory.telemetry.privacy import PrivacyFilter
from redactory.telemetry.redaction import (
    KNOWN_SCREENS,
    RawLocation,
    RedactedLocation,
    get_redacted_current_location,
    redact_location,
)
from redactory.telemetry.sink import PostHogSink, SinkOptions, TelemetrySink


__all__ = (
    "KNOWN_SCREENS",
    "AnalyticsPipeline",
    "AnonymityPolicy",
    "AnonymousEvent",
    "HashingService",
    "InitResult",
    "OnboardingLoginBegin",
    "PostHogSink",
    "PrivacyFilter",
    "PseudonymousEvent",
    "RawLocation",
    "RedactedContextCache",
    "RedactedLocation",
    "RoomEvent",
    "SinkOptions",
    "TelemetryEvent",
    "TelemetrySink",
    "get_redacted_current_location",
    "hash_hex",
    "redact_location",
    "static_location",
)
