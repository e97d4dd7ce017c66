# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Enumerations shared by the telemetry pipeline."""

from __future__ import annotations

from enum import Enum, unique


@unique
class AnonymityTier(str, Enum):
    """How strict the pipeline is about what an event may carry."""

    ANONYMOUS = "anonymous"
    """Only non-identifying data may be sent."""
    PSEUDONYMOUS = "pseudonymous"
    """Stable hashed identifiers may be sent. Requires explicit consent."""

    @classmethod
    def from_only_anonymous(cls, only_anonymous: bool) -> AnonymityTier:  # noqa: FBT001
        """Map the "only track anonymous events" consent flag to a tier."""
        return cls.ANONYMOUS if only_anonymous else cls.PSEUDONYMOUS


@unique
class EventClass(str, Enum):
    """The anonymity class an event declares for its payload."""

    ANONYMOUS = "anonymous"
    PSEUDONYMOUS = "pseudonymous"
    ROOM_SCOPED = "room_scoped"
    """Pseudonymous data keyed by a hashed room id."""

    @property
    def is_pseudonymous(self) -> bool:
        """Whether sending this class requires pseudonymous consent."""
        return self is not EventClass.ANONYMOUS


@unique
class PipelineState(str, Enum):
    """Lifecycle of the pipeline. DISABLED is terminal."""

    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    ACTIVE = "active"


@unique
class DisabledReason(str, Enum):
    """Why tracking was switched off for the rest of the process."""

    DO_NOT_TRACK = "do_not_track"
    NOT_CONFIGURED = "not_configured"
    SINK_INIT_FAILED = "sink_init_failed"


@unique
class TrackingOutcome(str, Enum):
    """What happened to a single tracking call.

    Callers of the tracking API cannot observe the difference between these
    outcomes except through this value; nothing is raised.
    """

    SENT = "sent"
    DROPPED_BY_POLICY = "dropped_by_policy"
    DISABLED = "disabled"
    FAILED = "failed"

    @property
    def sent(self) -> bool:
        """True only if the sink accepted the event."""
        return self is TrackingOutcome.SENT


__all__ = (
    "AnonymityTier",
    "DisabledReason",
    "EventClass",
    "PipelineState",
    "TrackingOutcome",
)
