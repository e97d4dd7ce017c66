# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Tests for identifier hashing."""

from __future__ import annotations

import pytest

from redactory.exceptions import DigestError
from redactory.telemetry.hashing import DIGEST_HEX_LENGTH, HashingService, hash_hex, is_digest


pytestmark = [pytest.mark.unit, pytest.mark.telemetry]


class TestHashingService:
    """Test the SHA-256 digest service."""

    def test_known_vector(self) -> None:
        """Test digest of 'abc' matches the published SHA-256 vector."""
        assert (
            HashingService().digest("abc")
            == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_digest_is_lowercase_fixed_length_hex(self) -> None:
        digest = HashingService().digest("!abc123:matrix.org")

        assert len(digest) == DIGEST_HEX_LENGTH
        assert digest == digest.lower()
        assert is_digest(digest)

    def test_digest_is_deterministic(self) -> None:
        service = HashingService()
        assert service.digest("@alice:example.org") == service.digest("@alice:example.org")
        assert HashingService().digest("x") == HashingService().digest("x")

    def test_distinct_inputs_distinct_digests(self) -> None:
        service = HashingService()
        assert service.digest("!a:example.org") != service.digest("!b:example.org")

    def test_unencodable_value_raises_without_leaking(self) -> None:
        """Test a lone surrogate aborts with DigestError and no raw value in the message."""
        with pytest.raises(DigestError) as exc_info:
            HashingService().digest("!room\ud800")

        assert "!room" not in str(exc_info.value)

    def test_non_string_raises(self) -> None:
        with pytest.raises(DigestError):
            HashingService().digest(12345)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_async_digest_matches_sync(self) -> None:
        service = HashingService()
        assert await service.adigest("!abc123") == service.digest("!abc123")
        assert await hash_hex("!abc123") == service.digest("!abc123")

    @pytest.mark.asyncio
    async def test_async_digest_propagates_failure(self) -> None:
        with pytest.raises(DigestError):
            await HashingService().adigest("\udfff")


def test_is_digest_rejects_other_strings() -> None:
    assert not is_digest("<redacted>")
    assert not is_digest("A" * DIGEST_HEX_LENGTH)
    assert not is_digest("ab" * 10)
