# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Privacy validation for event properties.

Checks the properties an event carries against the anonymity class it
declares, before the event reaches the sink.

Privacy Guarantees:
- No raw room, user or device identifiers in any event
- No hashed identifiers in events declared anonymous
- Values shaped like Matrix identifiers (``!room:server``, ``@user:server``)
  are rejected everywhere
"""

from __future__ import annotations

import logging
import re

from collections.abc import Mapping
from typing import Any

from redactory.core.types import EventClass
from redactory.telemetry.hashing import is_digest


logger = logging.getLogger(__name__)

# sigil, localpart, then a server name with an optional port
_MATRIX_ID_RE = re.compile(
    r"^[!@#+$][^\s:]+:"
    r"(?:(?:[A-Za-z0-9-]+\.)+[A-Za-z0-9-]+|localhost|\[[0-9A-Fa-f:.]+\])"
    r"(?::\d+)?$"
)


class PrivacyFilter:
    """
    Validates event properties against their declared anonymity class.

    Rejected events are dropped by the pipeline; nothing is rewritten here.
    """

    # Raw identifiers. Never allowed, whatever the class.
    RAW_IDENTIFIER_KEYS = frozenset({
        "roomid",
        "room_id",
        "userid",
        "user_id",
        "mxid",
        "email",
        "phone",
        "msisdn",
        "username",
        "displayname",
        "display_name",
    })

    # Stable pseudonymous identifiers. Allowed only outside the anonymous class.
    PSEUDONYMOUS_KEYS = frozenset({
        "hashedroomid",
        "hashed_room_id",
        "hasheduserid",
        "hashed_user_id",
        "distinct_id",
        "$device_id",
        "$user_id",
    })

    def validate_event(self, event_class: EventClass, properties: Mapping[str, Any]) -> bool:
        """
        Validate that properties are allowed for `event_class`.

        Args:
            event_class: The class the event declares
            properties: Event properties

        Returns:
            True if the event is safe to send, False otherwise
        """
        try:
            disallowed = self.RAW_IDENTIFIER_KEYS
            if event_class is EventClass.ANONYMOUS:
                disallowed = disallowed | self.PSEUDONYMOUS_KEYS

            if self._contains_disallowed_keys(properties, disallowed):
                logger.warning(
                    "Event contains identifier keys not allowed for its class, rejecting"
                )
                return False

            if self._contains_identifier_values(
                properties, allow_digests=event_class is not EventClass.ANONYMOUS
            ):
                logger.warning("Event contains identifier-like values, rejecting")
                return False

            return True

        except Exception:
            logger.exception("Error validating event privacy")
            # Fail closed - reject on error
            return False

    def _contains_disallowed_keys(
        self, data: Any, disallowed: frozenset[str], path: str = ""
    ) -> bool:
        """Check if data contains any disallowed keys."""
        if isinstance(data, Mapping):
            for key, value in data.items():
                if str(key).lower() in disallowed:
                    logger.debug("Found disallowed key: %s at path: %s", key, path)
                    return True
                new_path = f"{path}.{key}" if path else str(key)
                if self._contains_disallowed_keys(value, disallowed, new_path):
                    return True
        elif isinstance(data, (list, tuple)):
            for i, item in enumerate(data):
                if self._contains_disallowed_keys(item, disallowed, f"{path}[{i}]"):
                    return True

        return False

    def _contains_identifier_values(self, data: Any, *, allow_digests: bool) -> bool:
        """Check if data contains strings that look like identifiers."""
        if isinstance(data, str):
            return self.looks_like_identifier(data) or (not allow_digests and is_digest(data))
        if isinstance(data, Mapping):
            return any(
                self._contains_identifier_values(v, allow_digests=allow_digests)
                for v in data.values()
            )
        if isinstance(data, (list, tuple)):
            return any(
                self._contains_identifier_values(item, allow_digests=allow_digests)
                for item in data
            )
        return False

    @staticmethod
    def looks_like_identifier(value: str) -> bool:
        """Check if a string is shaped like a Matrix room, user or alias id."""
        return bool(_MATRIX_ID_RE.match(value))


__all__ = ("PrivacyFilter",)
