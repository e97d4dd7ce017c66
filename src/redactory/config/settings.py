# SPDX-FileCopyrightText: 2025 Knitli Inc.
# SPDX-FileContributor: Adam Poulemanos <adam@knit.li>
#
# SPDX-License-Identifier: MIT OR Apache-2.0
"""
Telemetry configuration settings.

Configuration sources (priority order):
1. Explicit keyword arguments (highest priority)
2. Environment variables
3. `.env` file
4. Defaults

Environment Variables:
    REDACTORY_POSTHOG_PROJECT_KEY: PostHog project key. Tracking is disabled without it.
    REDACTORY_POSTHOG_HOST: PostHog host (default: https://eu.i.posthog.com)
    REDACTORY_ONLY_TRACK_ANONYMOUS_EVENTS: Start in the anonymous tier (default: true)
    REDACTORY_DO_NOT_TRACK / DO_NOT_TRACK: Disable all tracking for the process
    REDACTORY_SERIALIZE_TRACKING: Run each recompute+capture pair exclusively
    REDACTORY_CURRENT_URL: Static location reported by non-browser hosts
    REDACTORY_LOG_LEVEL: Log level for the redactory logger (default: WARNING)
"""

from __future__ import annotations

import os

from typing import Annotated, Literal, Self

from pydantic import Field, HttpUrl, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from redactory.exceptions import ConfigurationError


DEFAULT_POSTHOG_HOST = "https://eu.i.posthog.com"


class TelemetrySettings(BaseSettings):
    """Telemetry configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="REDACTORY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    posthog_project_key: Annotated[
        SecretStr | None,
        Field(
            default=None,
            description="PostHog project key. Tracking stays disabled when this is unset.",
        ),
    ]

    posthog_host: Annotated[
        HttpUrl,
        Field(
            default=HttpUrl(DEFAULT_POSTHOG_HOST),
            description="PostHog host URL for telemetry events.",
        ),
    ]

    only_track_anonymous_events: Annotated[
        bool,
        Field(
            default=True,
            description=(
                "Start in the anonymous tier. Set to False once the user consents "
                "to pseudonymous tracking."
            ),
        ),
    ]

    do_not_track: Annotated[
        bool,
        Field(
            default=False,
            description=(
                "Disable all tracking for the lifetime of the process. "
                "Also read from DO_NOT_TRACK."
            ),
        ),
    ]

    mask_all_text: Annotated[
        bool, Field(default=True, description="Strip captured element text from events.")
    ]

    mask_all_element_attributes: Annotated[
        bool, Field(default=True, description="Strip captured element attributes from events.")
    ]

    serialize_tracking: Annotated[
        bool,
        Field(
            default=False,
            description="Make each recompute+capture pair exclusive instead of last-writer-wins.",
        ),
    ]

    current_url: Annotated[
        str | None,
        Field(
            default=None,
            description="Static location to report when the host has no navigation context.",
        ),
    ]

    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        Field(default="WARNING", description="Log level for the redactory logger."),
    ]

    rich_logging: Annotated[
        bool, Field(default=True, description="Use rich for log output.")
    ]

    configure_logging: Annotated[
        bool,
        Field(
            default=False,
            description="Install a handler on the redactory logger when building from settings.",
        ),
    ]

    @property
    def is_configured(self) -> bool:
        """Check if a sink configuration is available."""
        return bool(
            self.posthog_project_key is not None
            and self.posthog_project_key.get_secret_value()
            and self.posthog_host
        )

    @classmethod
    def unconfigured(cls) -> Self:
        """Settings with every default and no environment lookup."""
        return cls.model_construct()


_settings: TelemetrySettings | None = None


def _read_do_not_track() -> bool:
    """Read the cross-tool DO_NOT_TRACK convention."""
    return os.environ.get("DO_NOT_TRACK", "").strip().lower() in {"1", "true", "yes", "on"}


def get_settings(**overrides: object) -> TelemetrySettings:
    """Get the telemetry settings instance.

    Settings are loaded once and cached. Passing overrides always builds a
    fresh instance and replaces the cached one.

    Raises:
        ConfigurationError: If the environment holds invalid values.
    """
    global _settings
    if _settings is not None and not overrides:
        return _settings
    try:
        settings = TelemetrySettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid telemetry settings",
            details={"errors": e.error_count()},
            suggestions=["Check REDACTORY_* environment variables and your .env file."],
        ) from e
    if not settings.do_not_track and _read_do_not_track():
        settings.do_not_track = True
    _settings = settings
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads them."""
    global _settings
    _settings = None


__all__ = ("DEFAULT_POSTHOG_HOST", "TelemetrySettings", "get_settings", "reset_settings")
