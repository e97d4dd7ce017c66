# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Event capture: the public entry point of the telemetry pipeline.

Every tracking call runs the same sequence:

1. Ask the AnonymityPolicy whether the event class may be sent. If not, stop
   without touching the sink.
2. Await a refresh of the RedactedContextCache. Anonymous events are always
   redacted with the anonymous tier; other events with the current tier.
3. Call ``sink.capture``. The sink synchronously calls
   `AnalyticsPipeline.sanitize_properties`, which overwrites location and
   referrer fields from the cache that step 2 just filled.

Step 2 always completes before step 3 starts. Overlapping calls share the
cache with last-writer-wins semantics; since nothing awaits between a
refresh storing its value and the capture that follows it, each capture
reads the value its own call computed. Set ``serialize_tracking`` to make
each refresh+capture pair exclusive instead.

Nothing here raises to the caller. Each call returns a TrackingOutcome,
which callers are free to ignore.

Example:
    >>> pipeline = AnalyticsPipeline.from_settings()
    >>> await pipeline.init(only_track_anonymous_events=True)
    >>> await pipeline.track_anonymous_event("onboarding_login_begin")
    <TrackingOutcome.SENT: 'sent'>
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging

from collections.abc import Awaitable, Callable, Mapping
from types import TracebackType
from typing import Any, Final, Self, TypeAlias

from redactory.config.settings import TelemetrySettings, get_settings
from redactory.core.types import AnonymityTier, DisabledReason, EventClass, TrackingOutcome
from redactory.exceptions import ConfigurationError, DigestError
from redactory.telemetry.context import RedactedContextCache
from redactory.telemetry.events import RoomEvent, TelemetryEvent
from redactory.telemetry.hashing import HashingService
from redactory.telemetry.policy import AnonymityPolicy, InitResult
from redactory.telemetry.privacy import PrivacyFilter
from redactory.telemetry.redaction import RawLocation
from redactory.telemetry.sink import PostHogSink, SinkOptions, TelemetrySink


logger = logging.getLogger(__name__)

LocationSource: TypeAlias = Callable[[], RawLocation | Awaitable[RawLocation]]

CURRENT_URL_PROPERTY: Final[str] = "$current_url"
ROOM_ID_PROPERTY: Final[str] = "hashedRoomId"

# Built-in properties that identify where the user came from or which device
# they are on. Dropped in the anonymous tier.
ANONYMOUS_DROPPED_PROPERTIES: Final[tuple[str, ...]] = (
    "$referrer",
    "$referring_domain",
    "$initial_referrer",
    "$initial_referring_domain",
    "$device_id",
)


def static_location(url: str | None) -> LocationSource:
    """A location source that always reports `url`."""
    location = RawLocation.from_url(url) if url else RawLocation(origin="")
    return lambda: location


class AnalyticsPipeline:
    """
    Privacy-preserving event capture.

    Construct one pipeline at application start and pass it to the code that
    tracks events. It owns the policy and the redacted-location cache for
    the lifetime of the process.
    """

    def __init__(
        self,
        sink: TelemetrySink,
        *,
        api_key: str | None = None,
        options: SinkOptions | None = None,
        location_source: LocationSource | None = None,
        hasher: HashingService | None = None,
        only_track_anonymous_events: bool = True,
        do_not_track: bool = False,
        serialize_tracking: bool = False,
    ) -> None:
        """
        Initialize the pipeline. Nothing is sent until `init` succeeds.

        Args:
            sink: Telemetry backend
            api_key: Sink project key. Tracking is disabled without it.
            options: Sink options. The sanitize hook is filled in by the pipeline.
            location_source: Returns the current, unredacted location
            hasher: Digest service for identifiers
            only_track_anonymous_events: Default tier for `init`
            do_not_track: Default do-not-track signal for `init`
            serialize_tracking: Make each refresh+capture pair exclusive
        """
        self._sink = sink
        self._api_key = api_key
        self._options = options or SinkOptions()
        self._location_source = location_source or static_location(None)
        self._hasher = hasher or HashingService()
        self._default_only_anonymous = only_track_anonymous_events
        self._default_do_not_track = do_not_track

        self.policy = AnonymityPolicy()
        self.cache = RedactedContextCache(self._hasher)
        self.privacy_filter = PrivacyFilter()

        self._lock: asyncio.Lock | None = asyncio.Lock() if serialize_tracking else None
        self._sink_ready = False
        # class of the event inside sink.capture, read by the sanitize hook
        self._sending: EventClass | None = None

    @classmethod
    def from_settings(
        cls,
        settings: TelemetrySettings | None = None,
        *,
        sink: TelemetrySink | None = None,
        location_source: LocationSource | None = None,
    ) -> AnalyticsPipeline:
        """
        Create a pipeline from telemetry settings.

        Invalid settings are logged and treated as absent, which leaves
        tracking disabled.
        """
        if settings is None:
            try:
                settings = get_settings()
            except ConfigurationError:
                logger.exception("Telemetry settings are invalid, tracking will stay disabled")
                settings = TelemetrySettings.unconfigured()

        if settings.configure_logging:
            from redactory.common.logging import setup_logger

            _ = setup_logger("redactory", level=settings.log_level, rich=settings.rich_logging)

        api_key = (
            settings.posthog_project_key.get_secret_value()
            if settings.is_configured and settings.posthog_project_key is not None
            else None
        )
        return cls(
            sink or PostHogSink(),
            api_key=api_key,
            options=SinkOptions(
                api_host=str(settings.posthog_host),
                mask_all_text=settings.mask_all_text,
                mask_all_element_attributes=settings.mask_all_element_attributes,
            ),
            location_source=location_source or static_location(settings.current_url),
            only_track_anonymous_events=settings.only_track_anonymous_events,
            do_not_track=settings.do_not_track,
            serialize_tracking=settings.serialize_tracking,
        )

    # ------------------------------------------------------------------
    #                          lifecycle
    # ------------------------------------------------------------------

    async def init(
        self,
        only_track_anonymous_events: bool | None = None,  # noqa: FBT001
        *,
        do_not_track: bool | None = None,
    ) -> InitResult:
        """
        Activate tracking unless a do-not-track signal or missing configuration forbids it.

        The redacted location is computed before the sink starts, since the
        sink may run the sanitize hook during its own initialization.
        """
        only_anonymous = (
            self._default_only_anonymous
            if only_track_anonymous_events is None
            else only_track_anonymous_events
        )
        result = self.policy.initialize(
            only_anonymous,
            do_not_track=self._default_do_not_track if do_not_track is None else do_not_track,
            configured=bool(self._api_key),
        )
        if not result.active or self._sink_ready:
            return result

        try:
            await self._refresh_location()
        except Exception:
            logger.warning("Could not compute the redacted location during init", exc_info=True)

        try:
            self._sink.init(
                self._api_key or "",
                self._options.model_copy(update={"sanitize_properties": self.sanitize_properties}),
            )
        except Exception:
            logger.exception("Telemetry sink failed to initialize")
            return self.policy.disable(DisabledReason.SINK_INIT_FAILED)

        self._sink_ready = True
        return result

    def is_initialised(self) -> bool:
        """Whether tracking calls can reach the sink."""
        return self.policy.is_active and self._sink_ready

    def set_only_track_anonymous_events(self, enabled: bool) -> None:  # noqa: FBT001
        """Switch between the anonymous and pseudonymous tiers at runtime."""
        self.policy.set_only_anonymous(enabled)
        if enabled and self._sink_ready:
            try:
                self._sink.reset()
            except Exception:
                logger.exception("Failed to reset telemetry sink identity")

    def shutdown(self) -> None:
        """Flush the sink. Call once at application exit."""
        if not self._sink_ready:
            return
        try:
            self._sink.shutdown()
        except Exception:
            logger.exception("Error during telemetry sink shutdown")

    def __enter__(self) -> Self:
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit with automatic shutdown."""
        self.shutdown()

    # ------------------------------------------------------------------
    #                          sanitize hook
    # ------------------------------------------------------------------

    def sanitize_properties(self, properties: dict[str, Any], event_name: str) -> dict[str, Any]:
        """
        Scrub an outgoing event's properties. Called synchronously by the sink.

        Only reads state that `_refresh_location` computed beforehand.
        """
        anonymous = self.policy.only_anonymous or self._sending is EventClass.ANONYMOUS
        location = self.cache.location
        if location is not None and anonymous and self.cache.tier is not AnonymityTier.ANONYMOUS:
            # hashed segments never reach an anonymous event
            location = location.anonymized()
        properties[CURRENT_URL_PROPERTY] = None if location is None else str(location)

        if anonymous:
            for key in ANONYMOUS_DROPPED_PROPERTIES:
                properties[key] = None

        return properties

    # ------------------------------------------------------------------
    #                          tracking
    # ------------------------------------------------------------------

    async def track(self, event: TelemetryEvent) -> TrackingOutcome:
        """Track a typed event according to the class it declares."""
        event_name, properties = event.to_posthog_event()
        if isinstance(event, RoomEvent):
            return await self.track_room_event(event_name, event.room_id, properties)
        if event.anonymity is EventClass.ANONYMOUS:
            return await self.track_anonymous_event(event_name, properties)
        return await self.track_pseudonymous_event(event_name, properties)

    async def track_anonymous_event(
        self, event_name: str, properties: Mapping[str, Any] | None = None
    ) -> TrackingOutcome:
        """Track an event holding only anonymous data. Sent in either tier."""
        return await self._capture(event_name, properties or {}, EventClass.ANONYMOUS)

    async def track_pseudonymous_event(
        self, event_name: str, properties: Mapping[str, Any] | None = None
    ) -> TrackingOutcome:
        """Track an event that may hold hashed identifiers. Pseudonymous tier only."""
        return await self._capture(event_name, properties or {}, EventClass.PSEUDONYMOUS)

    async def track_room_event(
        self, event_name: str, room_id: str | None, properties: Mapping[str, Any] | None = None
    ) -> TrackingOutcome:
        """Track a pseudonymous event about a room. The room id is sent hashed."""
        if (outcome := self._gate(EventClass.ROOM_SCOPED)) is not None:
            return outcome
        try:
            hashed_room_id = await self._hasher.adigest(room_id) if room_id else None
        except DigestError:
            logger.warning("Could not hash room id, dropping event '%s'", event_name)
            return TrackingOutcome.FAILED
        return await self._capture(
            event_name,
            {**(properties or {}), ROOM_ID_PROPERTY: hashed_room_id},
            EventClass.ROOM_SCOPED,
        )

    async def identify_user(self, user_id: str) -> TrackingOutcome:
        """Associate later events with the hashed `user_id`. Pseudonymous tier only."""
        if not self.is_initialised():
            return TrackingOutcome.DISABLED
        if not self.policy.may_identify():
            logger.debug("Identify suppressed in the anonymous tier")
            return TrackingOutcome.DROPPED_BY_POLICY
        try:
            hashed_user_id = await self._hasher.adigest(user_id)
        except DigestError:
            logger.warning("Could not hash user id, not identifying")
            return TrackingOutcome.FAILED
        if not self.policy.may_identify():
            return TrackingOutcome.DROPPED_BY_POLICY
        try:
            self._sink.identify(hashed_user_id)
        except Exception:
            logger.exception("Failed to identify user with telemetry sink")
            return TrackingOutcome.FAILED
        return TrackingOutcome.SENT

    def _gate(self, event_class: EventClass) -> TrackingOutcome | None:
        """Return an outcome if the event must not be sent, else None."""
        if not self.is_initialised():
            return TrackingOutcome.DISABLED
        if not self.policy.may_track(event_class):
            logger.debug(
                "Dropping %s event in the %s tier", event_class.value, self.policy.tier.value
            )
            return TrackingOutcome.DROPPED_BY_POLICY
        return None

    async def _capture(
        self, event_name: str, properties: Mapping[str, Any], event_class: EventClass
    ) -> TrackingOutcome:
        if (outcome := self._gate(event_class)) is not None:
            return outcome
        if not self.privacy_filter.validate_event(event_class, properties):
            logger.warning(
                "Event '%s' failed privacy validation, not sending. "
                "This may indicate a bug in event construction.",
                event_name,
            )
            return TrackingOutcome.DROPPED_BY_POLICY

        async with self._lock if self._lock is not None else contextlib.nullcontext():
            try:
                await self._refresh_location(event_class)
            except DigestError:
                logger.warning("Could not redact the current location, dropping '%s'", event_name)
                return TrackingOutcome.FAILED
            except Exception:
                logger.exception("Failed to compute the current location for '%s'", event_name)
                return TrackingOutcome.FAILED

            # the tier may have changed while the location was being redacted
            if (outcome := self._gate(event_class)) is not None:
                return outcome

            self._sending = event_class
            try:
                self._sink.capture(event_name, dict(properties))
            except Exception:
                # Never fail application due to telemetry
                logger.exception("Failed to send telemetry event '%s'", event_name)
                return TrackingOutcome.FAILED
            finally:
                self._sending = None
        return TrackingOutcome.SENT

    async def _refresh_location(self, event_class: EventClass | None = None) -> None:
        location = self._location_source()
        if inspect.isawaitable(location):
            location = await location
        tier = (
            AnonymityTier.ANONYMOUS if event_class is EventClass.ANONYMOUS else self.policy.tier
        )
        _ = await self.cache.refresh(location, tier)


__all__ = ("AnalyticsPipeline", "LocationSource", "static_location")
