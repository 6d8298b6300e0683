"""Twitch EventSub webhook client.

This package provides:
- EventSubClient: subscription lifecycle and webhook callback
- AccessTokenManager: app access token acquisition and refresh
- WebhookVerifier: signature, freshness and duplicate checks
- Typed condition, subscription and event payload models
"""

from eventsub.auth import AccessTokenManager
from eventsub.client import SUBSCRIPTION_FAILED_EVENT, EventSubClient
from eventsub.config import Settings
from eventsub.errors import (
    ClientNotStartedError,
    ConfigurationError,
    EventSubError,
    RetryConfig,
    TokenRefreshError,
    TwitchAPIError,
)
from eventsub.events import EventSubject
from eventsub.logging_config import configure_logging
from eventsub.models import (
    BroadcasterUserIdCondition,
    ChannelRaidCondition,
    CustomRewardCondition,
    DropEntitlementGrantCondition,
    EventSubType,
    ExtensionClientIdCondition,
    StreamOfflineEvent,
    StreamOnlineEvent,
    Subscription,
    SubscriptionList,
    SubscriptionResult,
    SubscriptionStatus,
    UserIdCondition,
)
from eventsub.webhooks import VerificationResult, WebhookResponse, WebhookVerifier

__all__ = [
    # Client
    "EventSubClient",
    "SUBSCRIPTION_FAILED_EVENT",
    "AccessTokenManager",
    "EventSubject",
    "Settings",
    "configure_logging",
    # Errors
    "ClientNotStartedError",
    "ConfigurationError",
    "EventSubError",
    "RetryConfig",
    "TokenRefreshError",
    "TwitchAPIError",
    # Models
    "BroadcasterUserIdCondition",
    "ChannelRaidCondition",
    "CustomRewardCondition",
    "DropEntitlementGrantCondition",
    "EventSubType",
    "ExtensionClientIdCondition",
    "StreamOfflineEvent",
    "StreamOnlineEvent",
    "Subscription",
    "SubscriptionList",
    "SubscriptionResult",
    "SubscriptionStatus",
    "UserIdCondition",
    # Webhooks
    "VerificationResult",
    "WebhookResponse",
    "WebhookVerifier",
]
