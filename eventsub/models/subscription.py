"""EventSub subscription types and models.

Defines the subscription request sent to Twitch, the subscription records
returned by the API, and the per-item result of submitting queued requests.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventSubType(str, Enum):
    """Supported EventSub subscription types.

    Types are organized by scope:
    - channel.*: Channel activity (follows, subs, raids, points, polls...)
    - drop.* / extension.*: Developer-scoped events
    - stream.*: Stream lifecycle
    - user.*: User account events
    """

    # Channel events
    CHANNEL_UPDATE = "channel.update"
    CHANNEL_FOLLOW = "channel.follow"
    CHANNEL_SUBSCRIBE = "channel.subscribe"
    CHANNEL_SUBSCRIPTION_END = "channel.subscription.end"
    CHANNEL_SUBSCRIPTION_GIFT = "channel.subscription.gift"
    CHANNEL_SUBSCRIPTION_MESSAGE = "channel.subscription.message"
    CHANNEL_CHEER = "channel.cheer"
    CHANNEL_RAID = "channel.raid"
    CHANNEL_BAN = "channel.ban"
    CHANNEL_UNBAN = "channel.unban"
    CHANNEL_MODERATOR_ADD = "channel.moderator.add"
    CHANNEL_MODERATOR_REMOVE = "channel.moderator.remove"

    # Channel points
    CHANNEL_POINTS_REWARD_ADD = "channel.channel_points_custom_reward.add"
    CHANNEL_POINTS_REWARD_UPDATE = "channel.channel_points_custom_reward.update"
    CHANNEL_POINTS_REWARD_REMOVE = "channel.channel_points_custom_reward.remove"
    CHANNEL_POINTS_REDEMPTION_ADD = "channel.channel_points_custom_reward_redemption.add"
    CHANNEL_POINTS_REDEMPTION_UPDATE = "channel.channel_points_custom_reward_redemption.update"

    # Polls, predictions, hype trains
    CHANNEL_POLL_BEGIN = "channel.poll.begin"
    CHANNEL_POLL_PROGRESS = "channel.poll.progress"
    CHANNEL_POLL_END = "channel.poll.end"
    CHANNEL_PREDICTION_BEGIN = "channel.prediction.begin"
    CHANNEL_PREDICTION_PROGRESS = "channel.prediction.progress"
    CHANNEL_PREDICTION_LOCK = "channel.prediction.lock"
    CHANNEL_PREDICTION_END = "channel.prediction.end"
    CHANNEL_HYPE_TRAIN_BEGIN = "channel.hype_train.begin"
    CHANNEL_HYPE_TRAIN_PROGRESS = "channel.hype_train.progress"
    CHANNEL_HYPE_TRAIN_END = "channel.hype_train.end"

    # Developer events
    DROP_ENTITLEMENT_GRANT = "drop.entitlement.grant"
    EXTENSION_BITS_TRANSACTION_CREATE = "extension.bits_transaction.create"

    # Stream events
    STREAM_ONLINE = "stream.online"
    STREAM_OFFLINE = "stream.offline"

    # User events
    USER_UPDATE = "user.update"


class SubscriptionStatus(str, Enum):
    """Status of a subscription as reported by Twitch."""

    ENABLED = "enabled"
    PENDING = "webhook_callback_verification_pending"
    VERIFICATION_FAILED = "webhook_callback_verification_failed"
    NOTIFICATION_FAILURES_EXCEEDED = "notification_failures_exceeded"
    AUTHORIZATION_REVOKED = "authorization_revoked"
    USER_REMOVED = "user_removed"


def event_type_value(event_type: EventSubType | str) -> str:
    """Get the wire string for an event type."""
    return event_type.value if isinstance(event_type, EventSubType) else event_type


class Transport(BaseModel):
    """Delivery method for a subscription."""

    method: str = Field(default="webhook", description="Delivery method")
    callback: str = Field(..., description="Callback URL for notifications")
    secret: str | None = Field(
        default=None,
        description="Signing secret (sent on create, never returned)",
    )


class SubscriptionRequest(BaseModel):
    """Payload for creating a subscription.

    Instances are compared by identity when queued, so the same event type
    and condition may be queued more than once.
    """

    type: str = Field(..., description="EventSub subscription type")
    version: str = Field(default="1", description="Subscription type version")
    condition: dict[str, str] = Field(..., description="Event-specific condition")
    transport: Transport = Field(..., description="Delivery transport")

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the API request body."""
        return self.model_dump(exclude_none=True)


class Subscription(BaseModel):
    """A subscription record returned by the Twitch API."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    version: str = "1"
    status: str
    cost: int = 0
    condition: dict[str, Any] = Field(default_factory=dict)
    transport: Transport
    created_at: str


class Pagination(BaseModel):
    """Cursor pagination for list responses."""

    cursor: str | None = None


class SubscriptionList(BaseModel):
    """Response of the list subscriptions endpoint."""

    data: list[Subscription] = Field(default_factory=list)
    total: int = 0
    total_cost: int = 0
    max_total_cost: int = 0
    pagination: Pagination = Field(default_factory=Pagination)


class SubscriptionResult(BaseModel):
    """Outcome of submitting one queued subscription request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: SubscriptionRequest
    subscription: Subscription | None = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        """Whether the subscription was created."""
        return self.error is None and self.subscription is not None
