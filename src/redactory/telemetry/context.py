# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
The most recently redacted location.

PostHog calls the sanitize hook synchronously while it builds an event, so
the hook cannot hash anything itself. `refresh()` does the asynchronous work
ahead of time and stores the result with a single assignment; the hook only
ever reads `current`. `refresh()` is the one writer and the hook the one
reader.
"""

from __future__ import annotations

import logging

from redactory.core.types import AnonymityTier
from redactory.telemetry.hashing import HashingService
from redactory.telemetry.redaction import RawLocation, RedactedLocation, redact_location


logger = logging.getLogger(__name__)


class RedactedContextCache:
    """Redacted location, refreshed asynchronously and read synchronously."""

    def __init__(self, hasher: HashingService | None = None) -> None:
        self._hasher = hasher or HashingService()
        self._location: RedactedLocation | None = None
        self._tier: AnonymityTier | None = None
        self._generation = 0

    @property
    def current(self) -> str | None:
        """The last redacted location as a URL, or None if never computed."""
        return None if self._location is None else str(self._location)

    @property
    def location(self) -> RedactedLocation | None:
        return self._location

    @property
    def tier(self) -> AnonymityTier | None:
        """Tier the current value was redacted with."""
        return self._tier

    @property
    def generation(self) -> int:
        """Number of completed refreshes."""
        return self._generation

    @property
    def populated(self) -> bool:
        return self._location is not None

    async def refresh(self, location: RawLocation, tier: AnonymityTier) -> RedactedLocation:
        """Recompute the redacted location for `tier` and store it.

        Raises:
            DigestError: If hashing fails. The previous value is left in place.
        """
        redacted = await redact_location(location, tier, hasher=self._hasher)
        # no await between here and the caller's capture
        self._location = redacted
        self._tier = tier
        self._generation += 1
        logger.debug("Redacted location refreshed (generation %d)", self._generation)
        return redacted


__all__ = ("RedactedContextCache",)
