# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Global pytest configuration and fixtures for redactory tests."""

from __future__ import annotations

import hashlib
import os

from pathlib import Path
from typing import Any

import pytest

from redactory.config.settings import reset_settings
from redactory.exceptions import DigestError, SinkError
from redactory.telemetry.capture import AnalyticsPipeline
from redactory.telemetry.hashing import HashingService
from redactory.telemetry.redaction import RawLocation
from redactory.telemetry.sink import SinkOptions


ROOM_URL = "https://app.element.io/#/room/!abc123"

# Segment that PoisonHasher refuses to hash.
POISON = "poison"


def sha256_hex(value: str) -> str:
    """Reference digest, computed independently of the code under test."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class PoisonHasher(HashingService):
    """Hashing service that fails on one known value."""

    def digest(self, value: str) -> str:
        if value == POISON:
            raise DigestError("Identifier could not be encoded for hashing")
        return super().digest(value)


class RecordingSink:
    """Fake sink that records calls and runs the sanitize hook like PostHog does.

    Every capture asserts that the pipeline refreshed its redacted location
    since the previous capture, i.e. that the refresh finished first.
    """

    # Built-in properties a browser SDK would attach before sanitizing.
    BUILTINS: dict[str, Any] = {
        "$current_url": "https://app.element.io/#/room/!abc123:matrix.org",
        "$referrer": "https://example.org/invite/!abc123:matrix.org",
        "$referring_domain": "example.org",
        "$initial_referrer": "https://example.org/",
        "$initial_referring_domain": "example.org",
        "$device_id": "0189c3e4-device",
    }

    def __init__(self) -> None:
        self.pipeline: AnalyticsPipeline | None = None
        self.api_key: str | None = None
        self.options: SinkOptions | None = None
        self.captured: list[tuple[str, dict[str, Any]]] = []
        self.identified: list[str] = []
        self.resets = 0
        self.shutdowns = 0
        self.fail_init = False
        self.fail_capture = False
        self._last_generation = 0

    @property
    def capture_count(self) -> int:
        return len(self.captured)

    def init(self, api_key: str, options: SinkOptions) -> None:
        if self.fail_init:
            raise SinkError("sink refused to start")
        self.api_key = api_key
        self.options = options

    def capture(self, event_name: str, properties: dict[str, Any]) -> None:
        if self.fail_capture:
            raise SinkError("transport down")
        assert self.options is not None
        assert self.options.sanitize_properties is not None
        if self.pipeline is not None:
            cache = self.pipeline.cache
            assert cache.populated, "capture ran before the redacted location was computed"
            assert cache.generation > self._last_generation, "capture reused a stale refresh"
            self._last_generation = cache.generation
        sanitized = self.options.sanitize_properties(
            {**self.BUILTINS, **properties}, event_name
        )
        self.captured.append((event_name, sanitized))

    def identify(self, hashed_id: str) -> None:
        self.identified.append(hashed_id)

    def reset(self) -> None:
        self.resets += 1

    def shutdown(self) -> None:
        self.shutdowns += 1


class LocationHolder:
    """Mutable current location, standing in for the browser's window.location."""

    def __init__(self, url: str = ROOM_URL) -> None:
        self.url = url
        self.calls = 0

    def __call__(self) -> RawLocation:
        self.calls += 1
        return RawLocation.from_url(self.url)


@pytest.fixture(autouse=True)
def isolated_test_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep real environment variables and .env files away from the tests."""
    for key in list(os.environ):
        if key.startswith("REDACTORY_") or key == "DO_NOT_TRACK":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def location() -> LocationHolder:
    return LocationHolder()


@pytest.fixture
def pipeline(sink: RecordingSink, location: LocationHolder) -> AnalyticsPipeline:
    """A configured pipeline wired to the recording sink. Not yet initialized."""
    pipeline = AnalyticsPipeline(
        sink, api_key="phc_test", location_source=location, hasher=PoisonHasher()
    )
    sink.pipeline = pipeline
    return pipeline
