"""Routing of verified webhook messages to local events.

Each message type maps to one outcome:
- notification: publish the subscription type with the event payload
- webhook_callback_verification: publish "challenge", echo the challenge
- revocation: publish "revocation"
- anything else: publish "error", answer 500
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from eventsub.events.emitter import EventSubject
from eventsub.models.notification import ChallengeMessage, parse_event

logger = structlog.get_logger(__name__)

ERROR_EVENT = "error"
CHALLENGE_EVENT = "challenge"
REVOCATION_EVENT = "revocation"


class MessageType(str, Enum):
    """Values of the Twitch-Eventsub-Message-Type header."""

    NOTIFICATION = "notification"
    VERIFICATION = "webhook_callback_verification"
    REVOCATION = "revocation"


@dataclass(frozen=True)
class WebhookResponse:
    """Framework-independent answer to a webhook request."""

    status: int
    body: str = ""
    media_type: str = "text/plain"


class NotificationDispatcher:
    """Dispatches verified messages to an EventSubject."""

    def __init__(self, events: EventSubject) -> None:
        self._events = events
        self._logger = logger.bind(component="notification_dispatcher")

    async def dispatch(
        self,
        message_type: str | None,
        message: dict[str, Any],
    ) -> WebhookResponse:
        """Dispatch one verified message.

        Args:
            message_type: Message type header value.
            message: Parsed JSON body.

        Returns:
            Response to send back to Twitch.
        """
        if message_type == MessageType.NOTIFICATION.value:
            try:
                await self.handle_notification(message)
            except TypeError as e:
                self._logger.error("notification_malformed", error=str(e))
                await self._events.publish(ERROR_EVENT, e)
                return WebhookResponse(500)
            return WebhookResponse(200)

        if message_type == MessageType.VERIFICATION.value:
            try:
                challenge = ChallengeMessage.model_validate(message)
            except ValidationError as e:
                self._logger.error("challenge_malformed", error=str(e))
                await self._events.publish(ERROR_EVENT, e)
                return WebhookResponse(500)

            self._logger.info(
                "webhook_challenge_received",
                subscription_type=challenge.subscription.get("type"),
            )
            await self._events.publish(CHALLENGE_EVENT, message)
            return WebhookResponse(200, challenge.challenge)

        if message_type == MessageType.REVOCATION.value:
            subscription = message.get("subscription") or {}
            if not isinstance(subscription, dict):
                error = TypeError(
                    f"Expected revoked subscription to be an object, received "
                    f"{type(subscription).__name__}"
                )
                self._logger.error("revocation_malformed", error=str(error))
                await self._events.publish(ERROR_EVENT, error)
                return WebhookResponse(500)

            self._logger.warning(
                "subscription_revoked",
                subscription_id=subscription.get("id"),
                status=subscription.get("status"),
            )
            await self._events.publish(REVOCATION_EVENT, message)
            return WebhookResponse(200)

        self._logger.error("unknown_message_type", message_type=message_type)
        await self._events.publish(
            ERROR_EVENT,
            ValueError(f"Could not determine EventSub message type: {message_type!r}"),
        )
        return WebhookResponse(500)

    async def handle_notification(self, message: dict[str, Any]) -> None:
        """Publish a notification under its subscription type.

        Handlers receive (event, subscription). Stream events arrive as
        typed models, other types as plain dicts.

        Raises:
            TypeError: If the subscription type is missing or not a string.
        """
        subscription = message.get("subscription")
        event_type = subscription.get("type") if isinstance(subscription, dict) else None
        if not event_type or not isinstance(event_type, str):
            raise TypeError(
                f"Expected subscription type to be a string, received "
                f"{event_type!r} ({type(event_type).__name__})"
            )

        raw_event = message.get("event") or {}
        try:
            event = parse_event(event_type, raw_event)
        except ValidationError as e:
            self._logger.warning(
                "event_payload_unparsed",
                event_type=event_type,
                error=str(e),
            )
            event = raw_event

        self._logger.info("notification_received", event_type=event_type)
        await self._events.publish(event_type, event, subscription)
