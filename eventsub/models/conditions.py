"""Subscription condition variants.

Every EventSub subscription carries exactly one condition whose shape
depends on the event type. The mapping from event type to condition
variant lives in CONDITION_TYPES.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from eventsub.models.subscription import EventSubType, event_type_value


class _Condition(BaseModel):
    """Base for condition variants. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_payload(self) -> dict[str, str]:
        """Serialize to the API representation, omitting unset fields."""
        return self.model_dump(exclude_none=True)


class BroadcasterUserIdCondition(_Condition):
    """Condition for channel- and stream-scoped events."""

    broadcaster_user_id: str = Field(..., min_length=1)


class CustomRewardCondition(_Condition):
    """Condition for channel points reward and redemption events."""

    broadcaster_user_id: str = Field(..., min_length=1)
    reward_id: str | None = Field(
        default=None,
        description="Restrict to a single reward (optional)",
    )


class UserIdCondition(_Condition):
    """Condition for user-scoped events."""

    user_id: str = Field(..., min_length=1)


class ExtensionClientIdCondition(_Condition):
    """Condition for extension events."""

    extension_client_id: str = Field(..., min_length=1)


class ChannelRaidCondition(_Condition):
    """Condition for raids; exactly one direction must be given."""

    from_broadcaster_user_id: str | None = None
    to_broadcaster_user_id: str | None = None

    @model_validator(mode="after")
    def _exactly_one_direction(self) -> "ChannelRaidCondition":
        if (self.from_broadcaster_user_id is None) == (self.to_broadcaster_user_id is None):
            raise ValueError(
                "Exactly one of from_broadcaster_user_id or to_broadcaster_user_id is required"
            )
        return self


class DropEntitlementGrantCondition(_Condition):
    """Condition for drop entitlement grants."""

    organization_id: str = Field(..., min_length=1)
    category_id: str | None = None
    campaign_id: str | None = None


Condition = (
    BroadcasterUserIdCondition
    | CustomRewardCondition
    | UserIdCondition
    | ExtensionClientIdCondition
    | ChannelRaidCondition
    | DropEntitlementGrantCondition
)


CONDITION_TYPES: dict[EventSubType, type[_Condition]] = {
    EventSubType.CHANNEL_UPDATE: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_FOLLOW: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_SUBSCRIBE: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_SUBSCRIPTION_END: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_SUBSCRIPTION_GIFT: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_SUBSCRIPTION_MESSAGE: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_CHEER: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_RAID: ChannelRaidCondition,
    EventSubType.CHANNEL_BAN: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_UNBAN: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_MODERATOR_ADD: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_MODERATOR_REMOVE: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_POINTS_REWARD_ADD: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_POINTS_REWARD_UPDATE: CustomRewardCondition,
    EventSubType.CHANNEL_POINTS_REWARD_REMOVE: CustomRewardCondition,
    EventSubType.CHANNEL_POINTS_REDEMPTION_ADD: CustomRewardCondition,
    EventSubType.CHANNEL_POINTS_REDEMPTION_UPDATE: CustomRewardCondition,
    EventSubType.CHANNEL_POLL_BEGIN: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_POLL_PROGRESS: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_POLL_END: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_PREDICTION_BEGIN: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_PREDICTION_PROGRESS: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_PREDICTION_LOCK: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_PREDICTION_END: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_HYPE_TRAIN_BEGIN: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_HYPE_TRAIN_PROGRESS: BroadcasterUserIdCondition,
    EventSubType.CHANNEL_HYPE_TRAIN_END: BroadcasterUserIdCondition,
    EventSubType.DROP_ENTITLEMENT_GRANT: DropEntitlementGrantCondition,
    EventSubType.EXTENSION_BITS_TRANSACTION_CREATE: ExtensionClientIdCondition,
    EventSubType.STREAM_ONLINE: BroadcasterUserIdCondition,
    EventSubType.STREAM_OFFLINE: BroadcasterUserIdCondition,
    EventSubType.USER_UPDATE: UserIdCondition,
}


def condition_model_for(event_type: EventSubType | str) -> type[_Condition] | None:
    """Get the condition variant that applies to an event type.

    Args:
        event_type: EventSub subscription type.

    Returns:
        Condition model class, or None for unknown event types.
    """
    try:
        return CONDITION_TYPES[EventSubType(event_type)]
    except ValueError:
        return None


def build_condition(
    event_type: EventSubType | str,
    condition: Condition | dict[str, Any],
) -> dict[str, str]:
    """Validate a condition against an event type and serialize it.

    Args:
        event_type: EventSub subscription type.
        condition: Condition model instance or raw mapping.

    Returns:
        Condition in API representation.

    Raises:
        ValueError: If the condition does not fit the event type.
    """
    model = condition_model_for(event_type)

    if model is None:
        # Unknown event types are passed through unvalidated
        if isinstance(condition, _Condition):
            return condition.to_payload()
        if not isinstance(condition, Mapping):
            raise ValueError(
                f"Expected a condition mapping for {event_type_value(event_type)!r}, "
                f"received {type(condition).__name__}"
            )
        return {key: str(value) for key, value in condition.items()}

    if isinstance(condition, _Condition):
        if not isinstance(condition, model):
            raise ValueError(
                f"{type(condition).__name__} does not apply to {event_type_value(event_type)!r}; "
                f"expected {model.__name__}"
            )
        return condition.to_payload()

    return model.model_validate(condition).to_payload()
