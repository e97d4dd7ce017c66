# sourcery skip: name-type-suffix
# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Telemetry sink boundary.

The pipeline talks to its sink through a narrow interface: initialize with a
project key and options, capture, identify, reset, shut down. Transport,
batching and retries belong to the sink.

`PostHogSink` implements the interface on the PostHog Python client. The
pipeline's sanitize hook runs inside PostHog's ``before_send`` callback,
which PostHog invokes synchronously from ``capture`` before the event is
queued.
"""

from __future__ import annotations

import logging

from collections.abc import Callable
from types import TracebackType
from typing import Annotated, Any, Protocol, Self, runtime_checkable
from uuid import uuid4

from posthog import Posthog
from pydantic import BaseModel, ConfigDict, Field

from redactory.config.settings import DEFAULT_POSTHOG_HOST
from redactory.exceptions import SinkError


logger = logging.getLogger(__name__)

SESSION_ID = uuid4().hex

SanitizeHook = Callable[[dict[str, Any], str], dict[str, Any]]

# Autocaptured properties holding element text and attributes.
TEXT_PROPERTIES = frozenset({"$el_text"})
ELEMENT_ATTRIBUTE_PROPERTIES = frozenset({"$elements", "$elements_chain"})


class SinkOptions(BaseModel):
    """Options handed to the sink at initialization."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api_host: Annotated[str, Field(description="Sink host URL")] = DEFAULT_POSTHOG_HOST
    mask_all_text: Annotated[bool, Field(description="Strip element text")] = True
    mask_all_element_attributes: Annotated[
        bool, Field(description="Strip element attributes")
    ] = True
    sanitize_properties: Annotated[
        SanitizeHook | None,
        Field(description="Synchronous hook applied to every outgoing event's properties"),
    ] = None


@runtime_checkable
class TelemetrySink(Protocol):
    """What the pipeline needs from a telemetry backend."""

    def init(self, api_key: str, options: SinkOptions) -> None: ...

    def capture(self, event_name: str, properties: dict[str, Any]) -> None: ...

    def identify(self, hashed_id: str) -> None: ...

    def reset(self) -> None: ...

    def shutdown(self) -> None: ...


class PostHogSink:
    """
    PostHog-backed telemetry sink.

    Example:
        >>> sink = PostHogSink()
        >>> sink.init("phc_...", SinkOptions(sanitize_properties=hook))
        >>> sink.capture("onboarding_login_begin", {})
    """

    def __init__(self, *, session_id: str = SESSION_ID) -> None:
        self._client: Posthog | None = None
        self._options = SinkOptions()
        self._session_id = session_id
        self._distinct_id = session_id

    @property
    def initialized(self) -> bool:
        return self._client is not None

    @property
    def distinct_id(self) -> str:
        """Id events are currently attributed to."""
        return self._distinct_id

    def init(self, api_key: str, options: SinkOptions) -> None:
        """
        Create the PostHog client.

        Raises:
            SinkError: If PostHog rejects the configuration.
        """
        if not api_key:
            raise SinkError("PostHog project key is empty")
        self._options = options
        try:
            self._client = Posthog(
                project_api_key=api_key,
                host=options.api_host,
                before_send=self._before_send,
                # Disable debug mode in production
                debug=False,
                # exception events would bypass the policy and the sanitize hook
                enable_exception_autocapture=False,
            )
        except Exception as e:
            self._client = None
            raise SinkError(
                "Failed to initialize PostHog client", details={"host": options.api_host}
            ) from e
        logger.info("PostHog telemetry client initialized")

    def _before_send(self, msg: dict[str, Any]) -> dict[str, Any] | None:
        """Mask and sanitize an outgoing message. Drops it on any error."""
        try:
            properties = dict(msg.get("properties") or {})
            if self._options.mask_all_text:
                properties = {k: v for k, v in properties.items() if k not in TEXT_PROPERTIES}
            if self._options.mask_all_element_attributes:
                properties = {
                    k: v for k, v in properties.items() if k not in ELEMENT_ATTRIBUTE_PROPERTIES
                }
            if self._options.sanitize_properties is not None:
                properties = self._options.sanitize_properties(properties, msg.get("event", ""))
        except Exception:
            # PostHog sends the original message when this callback raises
            logger.exception("Sanitizing telemetry event failed, dropping it")
            return None
        msg["properties"] = properties
        return msg

    def capture(self, event_name: str, properties: dict[str, Any]) -> None:
        """
        Send event to PostHog.

        Raises:
            SinkError: If the sink was never initialized.
        """
        if self._client is None:
            raise SinkError("PostHog client is not initialized", details={"event": event_name})
        _ = self._client.capture(
            event=event_name, distinct_id=self._distinct_id, properties=properties
        )
        logger.debug("Telemetry event sent: %s", event_name)

    def identify(self, hashed_id: str) -> None:
        """Attribute subsequent events to `hashed_id`."""
        if self._client is None:
            raise SinkError("PostHog client is not initialized", details={"event": "$identify"})
        self._distinct_id = hashed_id
        _ = self._client.capture(
            event="$identify",
            distinct_id=hashed_id,
            properties={"$anon_distinct_id": self._session_id},
        )

    def reset(self) -> None:
        """Start a new anonymous session id.

        The previous session id was merged into the identified user by
        `identify`, so it cannot be reused.
        """
        self._session_id = self._distinct_id = uuid4().hex

    def shutdown(self) -> None:
        """
        Flush pending events and close client.

        Should be called at application shutdown to ensure all events
        are sent before exit.
        """
        if self._client:
            try:
                self._client.flush()
                logger.info("PostHog client shut down successfully")
            except Exception:
                logger.exception("Error during PostHog client shutdown")

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


__all__ = ("SESSION_ID", "PostHogSink", "SanitizeHook", "SinkOptions", "TelemetrySink")
