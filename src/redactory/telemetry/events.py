# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Telemetry event schemas.

Every event declares the anonymity class of its payload. Anonymous events
may be sent without consent and must hold only non-identifying data.
Pseudonymous events may carry stable hashed identifiers and are sent only
once the user has opted in. Room events are pseudonymous events keyed by a
hashed room id; the raw room id they hold is never serialized.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from redactory.core.types import EventClass


class TelemetryEvent(BaseModel):
    """Base class for typed events."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    event_name: ClassVar[str]
    anonymity: ClassVar[EventClass]

    def properties(self) -> dict[str, Any]:
        """Event properties as sent to PostHog."""
        return self.model_dump(by_alias=True, mode="json")

    def to_posthog_event(self) -> tuple[str, dict[str, Any]]:
        """
        Convert event to PostHog format.

        Returns:
            Tuple of (event_name, properties_dict)
        """
        return self.event_name, self.properties()


class AnonymousEvent(TelemetryEvent):
    """An event holding only anonymous data."""

    anonymity: ClassVar[EventClass] = EventClass.ANONYMOUS


class PseudonymousEvent(TelemetryEvent):
    """An event that may hold hashed identifiers."""

    anonymity: ClassVar[EventClass] = EventClass.PSEUDONYMOUS


class RoomEvent(PseudonymousEvent):
    """A pseudonymous event about a single room."""

    anonymity: ClassVar[EventClass] = EventClass.ROOM_SCOPED

    room_id: Annotated[
        str | None,
        Field(exclude=True, description="Raw room id. Hashed into hashedRoomId before sending."),
    ] = None


class OnboardingLoginBegin(AnonymousEvent):
    """The user started the login flow during onboarding."""

    event_name: ClassVar[str] = "onboarding_login_begin"


__all__ = (
    "AnonymousEvent",
    "OnboardingLoginBegin",
    "PseudonymousEvent",
    "RoomEvent",
    "TelemetryEvent",
)
