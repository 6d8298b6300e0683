"""Client configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults. Values passed explicitly to the client
always take precedence over the environment.
"""

import os
from dataclasses import dataclass

# 14 days; the real lifetime of an app access token is not published
DEFAULT_TOKEN_REFRESH_INTERVAL_SECONDS = 60 * 60 * 24 * 14

# Twitch resends messages for up to 10 minutes
DEFAULT_DEDUP_WINDOW_SECONDS = 60 * 10


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set or not parseable.

    Returns:
        Float value from environment.
    """
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Client settings loaded from environment variables.

    Attributes:
        TWITCH_API_CLIENT_ID: Twitch application client ID.
        TWITCH_API_CLIENT_SECRET: Twitch application client secret.
        TWITCH_WEBHOOK_SECRET: Shared secret used to sign webhook messages.
        TOKEN_REFRESH_INTERVAL_SECONDS: Interval between access token refreshes.
        DEDUP_WINDOW_SECONDS: Replay window for message IDs and timestamps.
        HTTP_TIMEOUT_SECONDS: Timeout for outbound Twitch API calls.
        ENVIRONMENT: Deployment environment (development, staging, production).
        LOG_LEVEL: Logging level.
    """

    # Credentials
    TWITCH_API_CLIENT_ID: str | None = None
    TWITCH_API_CLIENT_SECRET: str | None = None
    TWITCH_WEBHOOK_SECRET: str | None = None

    # Timing
    TOKEN_REFRESH_INTERVAL_SECONDS: float = DEFAULT_TOKEN_REFRESH_INTERVAL_SECONDS
    DEDUP_WINDOW_SECONDS: float = DEFAULT_DEDUP_WINDOW_SECONDS
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Environment
    ENVIRONMENT: str = "production"

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def is_development(self) -> bool:
        """Check if running in a development environment."""
        return self.ENVIRONMENT.lower() == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.
        """
        return cls(
            TWITCH_API_CLIENT_ID=os.getenv("TWITCH_API_CLIENT_ID") or None,
            TWITCH_API_CLIENT_SECRET=os.getenv("TWITCH_API_CLIENT_SECRET") or None,
            TWITCH_WEBHOOK_SECRET=os.getenv("TWITCH_WEBHOOK_SECRET") or None,
            TOKEN_REFRESH_INTERVAL_SECONDS=_get_float_env(
                "TWITCH_TOKEN_REFRESH_INTERVAL_SECONDS",
                DEFAULT_TOKEN_REFRESH_INTERVAL_SECONDS,
            ),
            DEDUP_WINDOW_SECONDS=_get_float_env(
                "TWITCH_EVENTSUB_DEDUP_WINDOW_SECONDS",
                DEFAULT_DEDUP_WINDOW_SECONDS,
            ),
            HTTP_TIMEOUT_SECONDS=_get_float_env("TWITCH_HTTP_TIMEOUT_SECONDS", 30.0),
            ENVIRONMENT=os.getenv("ENVIRONMENT", "production"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
