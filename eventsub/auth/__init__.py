"""Access token management."""

from eventsub.auth.token_manager import (
    REFRESH_EVENT,
    REFRESH_FAILED_EVENT,
    AccessTokenManager,
    TokenResponse,
)

__all__ = [
    "AccessTokenManager",
    "TokenResponse",
    "REFRESH_EVENT",
    "REFRESH_FAILED_EVENT",
]
