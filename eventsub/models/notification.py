"""Inbound EventSub message payloads.

Notifications for known event types are parsed into typed event models;
everything else is handed to application code as a plain dict.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from eventsub.models.subscription import EventSubType


class StreamOnlineEvent(BaseModel):
    """Event payload for stream.online."""

    model_config = ConfigDict(extra="allow")

    id: str
    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str
    type: Literal["live", "playlist", "watch_party", "premiere", "rerun", ""] = "live"
    started_at: str


class StreamOfflineEvent(BaseModel):
    """Event payload for stream.offline."""

    model_config = ConfigDict(extra="allow")

    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str


EVENT_PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    EventSubType.STREAM_ONLINE.value: StreamOnlineEvent,
    EventSubType.STREAM_OFFLINE.value: StreamOfflineEvent,
}


def parse_event(event_type: str, event: dict[str, Any]) -> BaseModel | dict[str, Any]:
    """Parse an event payload into its typed model when one is known.

    Args:
        event_type: Subscription type of the notification.
        event: Raw event payload.

    Returns:
        Typed event model, or the raw payload for other event types.
    """
    model = EVENT_PAYLOAD_MODELS.get(event_type)
    if model is None:
        return event
    return model.model_validate(event)


class ChallengeMessage(BaseModel):
    """Body of a webhook_callback_verification message."""

    model_config = ConfigDict(extra="allow")

    challenge: str = Field(..., description="Value to echo back to Twitch")
    subscription: dict[str, Any] = Field(default_factory=dict)
