# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Consent and anonymity policy.

The policy answers two questions for the pipeline: may this class of event
leave the device at all, and which tier should the current location be
redacted with. It never raises; a denied event is simply not sent.

States:
    UNINITIALIZED -> DISABLED      do-not-track, or no sink configuration
    UNINITIALIZED -> ACTIVE(tier)
    ACTIVE(PSEUDONYMOUS) <-> ACTIVE(ANONYMOUS) via set_only_anonymous()

DISABLED is terminal for the lifetime of the process.
"""

from __future__ import annotations

import logging

from typing import NamedTuple

from redactory.core.types import AnonymityTier, DisabledReason, EventClass, PipelineState


logger = logging.getLogger(__name__)


class InitResult(NamedTuple):
    """Result of initializing the policy."""

    state: PipelineState
    reason: DisabledReason | None = None

    @property
    def active(self) -> bool:
        return self.state is PipelineState.ACTIVE


class AnonymityPolicy:
    """Holds the current tier and the do-not-track / consent gate."""

    def __init__(self) -> None:
        self._state = PipelineState.UNINITIALIZED
        self._tier = AnonymityTier.ANONYMOUS
        self._disabled_reason: DisabledReason | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def tier(self) -> AnonymityTier:
        """Tier to redact with. Anonymous until told otherwise."""
        return self._tier

    @property
    def only_anonymous(self) -> bool:
        return self._tier is AnonymityTier.ANONYMOUS

    @property
    def disabled_reason(self) -> DisabledReason | None:
        return self._disabled_reason

    @property
    def is_active(self) -> bool:
        return self._state is PipelineState.ACTIVE

    def initialize(
        self, only_anonymous: bool, *, do_not_track: bool, configured: bool  # noqa: FBT001
    ) -> InitResult:
        """Activate the policy unless the user or the configuration forbids tracking.

        Args:
            only_anonymous: Restrict tracking to the anonymous tier
            do_not_track: A do-not-track signal is present
            configured: A sink configuration is available

        Returns:
            The resulting state, with the reason if tracking was disabled.
        """
        if self._state is PipelineState.DISABLED:
            logger.debug("Tracking already disabled (%s)", self._disabled_reason)
            return InitResult(self._state, self._disabled_reason)

        if do_not_track:
            return self.disable(DisabledReason.DO_NOT_TRACK)
        if self._state is PipelineState.UNINITIALIZED and not configured:
            return self.disable(DisabledReason.NOT_CONFIGURED)

        if self._state is PipelineState.ACTIVE:
            logger.debug("Policy already active, updating tier only")
        self._tier = AnonymityTier.from_only_anonymous(only_anonymous)
        self._state = PipelineState.ACTIVE
        logger.info("Telemetry tracking active in %s tier", self._tier.value)
        return InitResult(self._state)

    def disable(self, reason: DisabledReason) -> InitResult:
        """Switch tracking off for the rest of the process."""
        if self._state is not PipelineState.DISABLED:
            self._state = PipelineState.DISABLED
            self._disabled_reason = reason
            logger.info("Telemetry tracking disabled: %s", reason.value)
        return InitResult(self._state, self._disabled_reason)

    def set_only_anonymous(self, only_anonymous: bool) -> None:  # noqa: FBT001
        """Change the tier at runtime, e.g. when the user revokes consent.

        Has no effect on the pipeline state: a disabled policy stays disabled
        and an uninitialized one stays uninitialized.
        """
        self._tier = AnonymityTier.from_only_anonymous(only_anonymous)
        logger.debug("Telemetry tier set to %s", self._tier.value)

    def may_track(self, event_class: EventClass) -> bool:
        """Whether an event of `event_class` may be sent right now."""
        if not self.is_active:
            return False
        if event_class.is_pseudonymous:
            return self._tier is AnonymityTier.PSEUDONYMOUS
        return True

    def may_identify(self) -> bool:
        """Whether a hashed user id may be associated with events."""
        return self.is_active and self._tier is AnonymityTier.PSEUDONYMOUS


__all__ = ("AnonymityPolicy", "InitResult")
