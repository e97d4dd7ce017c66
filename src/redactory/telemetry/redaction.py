# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Redaction of the current location before it is attached to an event.

Locations have the shape ``<origin><path>#/<screen>/<param>/<param>...``.
The screen name is kept only when it belongs to a fixed allow-list; every
parameter after it is replaced by a marker (anonymous tier) or by its digest
(pseudonymous tier). Local file URLs lose their path entirely, since it
names directories on the user's machine.

Example:
    >>> location = RawLocation.from_url("https://app.example.org/#/room/!abc123")
    >>> str(await redact_location(location, AnonymityTier.ANONYMOUS))
    'https://app.example.org/#/room/<redacted>'
"""

from __future__ import annotations

from dataclasses import replace
from typing import Annotated, Final
from urllib.parse import urlsplit

from pydantic import Field
from pydantic.dataclasses import dataclass

from redactory.core.types import AnonymityTier
from redactory.telemetry.hashing import HashingService


REDACTED_MARKER: Final[str] = "<redacted>"
REDACTED_SCREEN_MARKER: Final[str] = "<redacted_screen_name>"
REDACTED_FILE_PATH: Final[str] = "/<redacted_file_scheme_url>/"

LOCAL_FILE_ORIGIN_PREFIX: Final[str] = "file://"

KNOWN_SCREENS: Final[frozenset[str]] = frozenset({
    "register",
    "login",
    "forgot_password",
    "soft_logout",
    "new",
    "settings",
    "welcome",
    "home",
    "start",
    "directory",
    "start_sso",
    "start_cas",
    "groups",
    "complete_security",
    "post_registration",
    "room",
    "user",
    "group",
})

# Leading fragment tokens that carry no data of their own.
_SEPARATOR_TOKENS: Final[frozenset[str]] = frozenset({"", "#"})


@dataclass(frozen=True)
class RawLocation:
    """An unredacted location, split the way a browser splits it."""

    origin: Annotated[str, Field(description="Scheme and authority, e.g. https://host")]
    hash: Annotated[str, Field(description="Fragment, including the leading '#'")] = ""
    pathname: Annotated[str, Field(description="Path component")] = "/"

    @classmethod
    def from_url(cls, url: str) -> RawLocation:
        """Split a full URL. Query strings are dropped."""
        parts = urlsplit(url)
        return cls(
            origin=f"{parts.scheme}://{parts.netloc}" if parts.scheme else "",
            hash=f"#{parts.fragment}" if parts.fragment else "",
            pathname=parts.path or "/",
        )

    @property
    def is_local_file(self) -> bool:
        """Whether the location points into the local filesystem."""
        return self.origin.startswith(LOCAL_FILE_ORIGIN_PREFIX)


@dataclass(frozen=True)
class RedactedLocation:
    """A location with every identifying fragment replaced."""

    origin: str
    path: str
    separator: str
    screen: str
    trailing_segments: tuple[str, ...] = ()

    def anonymized(self) -> RedactedLocation:
        """The same location with every trailing segment masked."""
        masked = tuple(REDACTED_MARKER for _ in self.trailing_segments)
        return replace(self, trailing_segments=masked)

    def __str__(self) -> str:
        return (
            f"{self.origin}{self.path}{self.separator}/{self.screen}/"
            f"{'/'.join(self.trailing_segments)}"
        )


def _split_fragment(fragment: str) -> tuple[str, str, list[str]]:
    leading, *rest = fragment.split("/")
    screen = rest[0] if rest else ""
    return leading, screen, rest[1:]


async def redact_location(
    location: RawLocation, tier: AnonymityTier, *, hasher: HashingService | None = None
) -> RedactedLocation:
    """Redact `location` for the given tier.

    Raises:
        DigestError: If a trailing segment cannot be hashed. Nothing partial is returned.
    """
    hasher = hasher or HashingService()
    path = REDACTED_FILE_PATH if location.is_local_file else location.pathname

    leading, screen, trailing = _split_fragment(location.hash)
    if leading not in _SEPARATOR_TOKENS:
        # "#secret" has no separator; the token itself is data
        leading, screen, trailing = "#", "", []
    if screen not in KNOWN_SCREENS:
        screen = REDACTED_SCREEN_MARKER

    if tier is AnonymityTier.ANONYMOUS:
        segments = tuple(REDACTED_MARKER for _ in trailing)
    else:
        segments = tuple([await hasher.adigest(segment) for segment in trailing])

    return RedactedLocation(
        origin=location.origin,
        path=path,
        separator=leading,
        screen=screen,
        trailing_segments=segments,
    )


async def get_redacted_current_location(
    origin: str,
    hash: str,  # noqa: A002
    pathname: str,
    anonymity: AnonymityTier,
    *,
    hasher: HashingService | None = None,
) -> str:
    """Redact a location given as its browser components and recompose it."""
    location = RawLocation(origin=origin, hash=hash, pathname=pathname)
    return str(await redact_location(location, anonymity, hasher=hasher))


__all__ = (
    "KNOWN_SCREENS",
    "REDACTED_FILE_PATH",
    "REDACTED_MARKER",
    "REDACTED_SCREEN_MARKER",
    "RawLocation",
    "RedactedLocation",
    "get_redacted_current_location",
    "redact_location",
)
