# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""Tests for the PostHog sink."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from redactory.exceptions import SinkError
from redactory.telemetry.sink import PostHogSink, SinkOptions, TelemetrySink


pytestmark = [pytest.mark.unit, pytest.mark.telemetry, pytest.mark.mock_only]


@pytest.fixture
def mock_posthog():
    """Patch the PostHog client class."""
    with patch("redactory.telemetry.sink.Posthog") as mock_class:
        yield mock_class


@pytest.fixture
def posthog_sink(mock_posthog: MagicMock) -> PostHogSink:
    sink = PostHogSink(session_id="session-1")
    sink.init("phc_test", SinkOptions())
    return sink


def before_send_of(mock_posthog: MagicMock):
    return mock_posthog.call_args.kwargs["before_send"]


class TestPostHogSinkInit:
    """Test client creation."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(PostHogSink(), TelemetrySink)

    def test_creates_client(self, mock_posthog: MagicMock) -> None:
        sink = PostHogSink()

        sink.init("phc_test", SinkOptions(api_host="https://posthog.example.org"))

        assert sink.initialized
        kwargs = mock_posthog.call_args.kwargs
        assert kwargs["project_api_key"] == "phc_test"
        assert kwargs["host"] == "https://posthog.example.org"
        assert kwargs["debug"] is False
        assert kwargs["enable_exception_autocapture"] is False
        assert callable(kwargs["before_send"])

    def test_empty_key_raises(self, mock_posthog: MagicMock) -> None:
        with pytest.raises(SinkError):
            PostHogSink().init("", SinkOptions())
        mock_posthog.assert_not_called()

    def test_client_failure_raises(self, mock_posthog: MagicMock) -> None:
        mock_posthog.side_effect = ValueError("bad host")
        sink = PostHogSink()

        with pytest.raises(SinkError) as exc_info:
            sink.init("phc_test", SinkOptions())

        assert not sink.initialized
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestPostHogSinkCapture:
    """Test sending events."""

    def test_capture_before_init_raises(self) -> None:
        with pytest.raises(SinkError):
            PostHogSink().capture("a", {})

    def test_capture_uses_session_id(
        self, posthog_sink: PostHogSink, mock_posthog: MagicMock
    ) -> None:
        posthog_sink.capture("onboarding_login_begin", {"step": 1})

        mock_posthog.return_value.capture.assert_called_once_with(
            event="onboarding_login_begin", distinct_id="session-1", properties={"step": 1}
        )

    def test_identify_and_reset(self, posthog_sink: PostHogSink, mock_posthog: MagicMock) -> None:
        client = mock_posthog.return_value

        posthog_sink.identify("digest")
        posthog_sink.capture("a", {})

        assert posthog_sink.distinct_id == "digest"
        client.capture.assert_any_call(
            event="$identify",
            distinct_id="digest",
            properties={"$anon_distinct_id": "session-1"},
        )
        assert client.capture.call_args.kwargs["distinct_id"] == "digest"

        posthog_sink.reset()
        posthog_sink.capture("b", {})

        assert posthog_sink.distinct_id not in {"session-1", "digest"}
        assert client.capture.call_args.kwargs["distinct_id"] == posthog_sink.distinct_id

    def test_each_reset_starts_a_new_session(self, posthog_sink: PostHogSink) -> None:
        posthog_sink.reset()
        first = posthog_sink.distinct_id
        posthog_sink.reset()

        assert first != "session-1"
        assert posthog_sink.distinct_id != first

    def test_shutdown_flushes(self, posthog_sink: PostHogSink, mock_posthog: MagicMock) -> None:
        with posthog_sink:
            pass

        mock_posthog.return_value.flush.assert_called_once()

    def test_shutdown_swallows_flush_errors(
        self, posthog_sink: PostHogSink, mock_posthog: MagicMock
    ) -> None:
        mock_posthog.return_value.flush.side_effect = RuntimeError("network down")

        posthog_sink.shutdown()


class TestBeforeSend:
    """Test the before_send callback handed to PostHog."""

    def test_masks_text_and_attributes(self, mock_posthog: MagicMock) -> None:
        PostHogSink().init("phc_test", SinkOptions())
        msg = {
            "event": "$autocapture",
            "properties": {"$el_text": "Alice", "$elements_chain": "a.b", "kept": 1},
        }

        result = before_send_of(mock_posthog)(msg)

        assert result["properties"] == {"kept": 1}

    def test_masking_can_be_disabled(self, mock_posthog: MagicMock) -> None:
        options = SinkOptions(mask_all_text=False, mask_all_element_attributes=False)
        PostHogSink().init("phc_test", options)
        msg = {"event": "$autocapture", "properties": {"$el_text": "Go", "$elements": []}}

        result = before_send_of(mock_posthog)(msg)

        assert result["properties"] == {"$el_text": "Go", "$elements": []}

    def test_runs_sanitize_hook(self, mock_posthog: MagicMock) -> None:
        seen: list[str] = []

        def hook(properties: dict[str, Any], event_name: str) -> dict[str, Any]:
            seen.append(event_name)
            properties["$current_url"] = "https://app.element.io/#/room/<redacted>"
            return properties

        PostHogSink().init("phc_test", SinkOptions(sanitize_properties=hook))
        msg = {"event": "a", "properties": {"$current_url": "https://app.element.io/#/room/!x"}}

        result = before_send_of(mock_posthog)(msg)

        assert seen == ["a"]
        assert result["properties"]["$current_url"].endswith("<redacted>")

    def test_failing_hook_drops_event(self, mock_posthog: MagicMock) -> None:
        def hook(properties: dict[str, Any], event_name: str) -> dict[str, Any]:
            raise RuntimeError("boom")

        PostHogSink().init("phc_test", SinkOptions(sanitize_properties=hook))

        assert before_send_of(mock_posthog)({"event": "a", "properties": {}}) is None
