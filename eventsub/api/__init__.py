"""Outbound Twitch API plumbing."""

from eventsub.api.constants import (
    EVENTSUB_BASE_URL,
    HELIX_BASE_URL,
    OAUTH2_TOKEN_URL,
    SUBSCRIPTIONS_URL,
)
from eventsub.api.request_builder import HttpMethod, TwitchAPIRequestBuilder

__all__ = [
    "EVENTSUB_BASE_URL",
    "HELIX_BASE_URL",
    "OAUTH2_TOKEN_URL",
    "SUBSCRIPTIONS_URL",
    "HttpMethod",
    "TwitchAPIRequestBuilder",
]
