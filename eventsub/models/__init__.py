"""Payload, condition and subscription models."""

from eventsub.models.conditions import (
    CONDITION_TYPES,
    BroadcasterUserIdCondition,
    ChannelRaidCondition,
    Condition,
    CustomRewardCondition,
    DropEntitlementGrantCondition,
    ExtensionClientIdCondition,
    UserIdCondition,
    build_condition,
    condition_model_for,
)
from eventsub.models.notification import (
    EVENT_PAYLOAD_MODELS,
    ChallengeMessage,
    StreamOfflineEvent,
    StreamOnlineEvent,
    parse_event,
)
from eventsub.models.subscription import (
    EventSubType,
    Pagination,
    Subscription,
    SubscriptionList,
    SubscriptionRequest,
    SubscriptionResult,
    SubscriptionStatus,
    Transport,
    event_type_value,
)

__all__ = [
    # Conditions
    "BroadcasterUserIdCondition",
    "ChannelRaidCondition",
    "Condition",
    "CustomRewardCondition",
    "DropEntitlementGrantCondition",
    "ExtensionClientIdCondition",
    "UserIdCondition",
    "CONDITION_TYPES",
    "build_condition",
    "condition_model_for",
    # Notifications
    "ChallengeMessage",
    "StreamOfflineEvent",
    "StreamOnlineEvent",
    "EVENT_PAYLOAD_MODELS",
    "parse_event",
    # Subscriptions
    "EventSubType",
    "Pagination",
    "Subscription",
    "SubscriptionList",
    "SubscriptionRequest",
    "SubscriptionResult",
    "SubscriptionStatus",
    "Transport",
    "event_type_value",
]
