# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
One-way digests for identifiers.

Room ids, user ids and URL fragments are replaced by the lower-case hex
SHA-256 of their UTF-8 encoding. Other clients reporting to the same
analytics project hash with SHA-256 too, so digests correlate across them.

A value that cannot be encoded raises DigestError. Callers must abort rather
than send the raw value.
"""

from __future__ import annotations

import asyncio
import hashlib

from typing import Final

from redactory.exceptions import DigestError


DIGEST_HEX_LENGTH: Final[int] = 64


class HashingService:
    """Deterministic, non-invertible digest of identifier strings."""

    def digest(self, value: str) -> str:
        """Return the SHA-256 hex digest of `value`.

        Raises:
            DigestError: If `value` is not a string or cannot be encoded as UTF-8.
        """
        if not isinstance(value, str):
            raise DigestError(
                "Only strings can be hashed", details={"type": type(value).__name__}
            )
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError as e:
            # the value itself stays out of the error
            raise DigestError(
                "Identifier could not be encoded for hashing",
                details={"reason": e.reason, "position": e.start},
            ) from e
        return hashlib.sha256(encoded).hexdigest()

    async def adigest(self, value: str) -> str:
        """Digest `value` off the event loop."""
        return await asyncio.to_thread(self.digest, value)


_default_service = HashingService()


async def hash_hex(value: str) -> str:
    """Hash `value` with the default service."""
    return await _default_service.adigest(value)


def is_digest(value: str) -> bool:
    """Whether `value` has the shape of a digest produced here."""
    return len(value) == DIGEST_HEX_LENGTH and all(c in "0123456789abcdef" for c in value)


__all__ = ("DIGEST_HEX_LENGTH", "HashingService", "hash_hex", "is_digest")
