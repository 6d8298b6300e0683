"""EventSub client: subscription lifecycle and webhook entry point.

Ties together the token manager, the request builder, the verifier and
the dispatcher. Application code registers handlers with `on()`, requests
subscriptions with `subscribe()` and exposes `listener()` (or passes a
FastAPI app) as the webhook callback.

Example:
    client = EventSubClient(
        client_id="your-client-id",
        client_secret="your-client-secret",
        host="your-domain.example",
        webhook_secret="a-long-random-secret",
        app=app,
    )
    client.on("stream.online", handle_online)
    await client.subscribe(EventSubType.STREAM_ONLINE, {"broadcaster_user_id": "1337"})
    results = await client.start()
"""

import asyncio
import json
import secrets
from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from fastapi import FastAPI

from eventsub.api.constants import SUBSCRIPTIONS_URL
from eventsub.api.request_builder import HttpMethod, TwitchAPIRequestBuilder
from eventsub.auth.token_manager import (
    REFRESH_EVENT,
    REFRESH_FAILED_EVENT,
    AccessTokenManager,
)
from eventsub.config import Settings
from eventsub.errors import (
    ClientNotStartedError,
    ConfigurationError,
    EventSubError,
    RetryConfig,
    TwitchAPIError,
    call_with_retry,
)
from eventsub.events.emitter import EventHandler, EventSubject
from eventsub.models.conditions import Condition, build_condition
from eventsub.models.subscription import (
    EventSubType,
    Subscription,
    SubscriptionList,
    SubscriptionRequest,
    SubscriptionResult,
    SubscriptionStatus,
    Transport,
    event_type_value,
)
from eventsub.webhooks.dispatcher import ERROR_EVENT, NotificationDispatcher, WebhookResponse
from eventsub.webhooks.handler import Listener, build_listener, mount_webhook
from eventsub.webhooks.verification import (
    MESSAGE_ID_HEADER,
    MESSAGE_SIGNATURE_HEADER,
    MESSAGE_TIMESTAMP_HEADER,
    MESSAGE_TYPE_HEADER,
    WebhookVerifier,
)

logger = structlog.get_logger(__name__)

SUBSCRIPTION_FAILED_EVENT = "subscription_failed"

# Twitch rejects secrets outside this length range
MIN_SECRET_LENGTH = 10
MAX_SECRET_LENGTH = 100


def build_callback_address(host: str, port: int | None = None, path: str | None = None) -> str:
    """Build the public callback URL Twitch delivers to."""
    port_part = f":{port}" if port else ""
    return f"https://{host}{port_part}/{(path or '').lstrip('/')}"


class EventSubClient:
    """Central client for Twitch EventSub over webhooks.

    Attributes:
        address: Public callback URL sent to Twitch.
        access_token: Current app access token (None until started).
        webhook_secret: Secret used to sign and verify messages.
        token_manager: Owner of the access token.
        events: Subject application handlers are registered on.
    """

    def __init__(
        self,
        *,
        host: str,
        client_id: str | None = None,
        client_secret: str | None = None,
        port: int | None = None,
        path: str | None = None,
        webhook_secret: str | None = None,
        app: FastAPI | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        verifier: WebhookVerifier | None = None,
    ) -> None:
        """Initialize the client.

        Credentials and the webhook secret fall back to TWITCH_API_CLIENT_ID,
        TWITCH_API_CLIENT_SECRET and TWITCH_WEBHOOK_SECRET. If no webhook
        secret is found, a random one is generated at start(); only rely on
        that for development.

        Args:
            host: Public host Twitch sends events and verifications to.
            client_id: Twitch application client ID.
            client_secret: Twitch application client secret.
            port: Optional public port.
            path: Callback path (defaults to "/").
            webhook_secret: Shared secret, 10-100 characters.
            app: FastAPI app to mount the callback route on.
            settings: Settings (defaults to Settings.from_env()).
            http_client: httpx client for outbound calls.
            retry_config: Retry policy for token exchange and queued subscriptions.
            verifier: Custom verifier (e.g. with injected clocks).

        Raises:
            ConfigurationError: If host or credentials are missing, or the
                webhook secret has an invalid length.
        """
        self.settings = settings or Settings.from_env()

        self.client_id = client_id or self.settings.TWITCH_API_CLIENT_ID
        self._client_secret = client_secret or self.settings.TWITCH_API_CLIENT_SECRET
        if not self.client_id:
            raise ConfigurationError(
                "No client ID provided. Pass client_id or set TWITCH_API_CLIENT_ID"
            )
        if not self._client_secret:
            raise ConfigurationError(
                "No client secret provided. Pass client_secret or set TWITCH_API_CLIENT_SECRET"
            )
        if not host:
            raise ConfigurationError(
                "A host is required for Twitch to send events and verifications to"
            )

        self.webhook_secret = webhook_secret or self.settings.TWITCH_WEBHOOK_SECRET
        if self.webhook_secret is not None and not (
            MIN_SECRET_LENGTH <= len(self.webhook_secret) <= MAX_SECRET_LENGTH
        ):
            raise ConfigurationError(
                f"Webhook secret must be {MIN_SECRET_LENGTH}-{MAX_SECRET_LENGTH} characters"
            )

        self.address = build_callback_address(host, port, path)
        self.access_token: str | None = None
        self._http_client = http_client
        self._retry_config = retry_config or RetryConfig()
        self._pending: list[SubscriptionRequest] = []
        self._logger = logger.bind(component="eventsub_client")

        self.events = EventSubject()
        self.verifier = verifier or WebhookVerifier(
            window_seconds=self.settings.DEDUP_WINDOW_SECONDS,
        )
        self.verifier.secret = self.webhook_secret
        self.dispatcher = NotificationDispatcher(self.events)

        self.token_manager = AccessTokenManager(
            self.client_id,
            self._client_secret,
            refresh_interval=self.settings.TOKEN_REFRESH_INTERVAL_SECONDS,
            retry_config=self._retry_config,
            http_client=http_client,
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
        )
        self.token_manager.events.subscribe(REFRESH_EVENT, self._on_token_refresh)
        self.token_manager.events.subscribe(REFRESH_FAILED_EVENT, self._on_token_refresh_failed)

        if app is not None:
            mount_webhook(app, self.handle_webhook, path)

    # ------------------------------------------------------------------
    # Local events
    # ------------------------------------------------------------------

    def on(self, event_name: EventSubType | str, handler: EventHandler) -> "EventSubClient":
        """Register a handler for a local event.

        Notification handlers receive (event, subscription); "challenge"
        and "revocation" handlers receive the message body; "error"
        handlers receive the exception.
        """
        self.events.subscribe(event_type_value(event_name), handler)
        return self

    def off(self, event_name: EventSubType | str, handler: EventHandler) -> "EventSubClient":
        """Remove a handler registered with on()."""
        self.events.unsubscribe(event_type_value(event_name), handler)
        return self

    def _on_token_refresh(self, token: str) -> None:
        self.access_token = token

    async def _on_token_refresh_failed(self, error: EventSubError) -> None:
        await self.events.publish(REFRESH_FAILED_EVENT, error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def pending(self) -> list[SubscriptionRequest]:
        """Subscription requests waiting to be submitted."""
        return list(self._pending)

    async def start(self) -> list[SubscriptionResult]:
        """Start the client and submit queued subscriptions.

        Returns:
            One result per queued request; failed requests stay queued.

        Raises:
            TokenRefreshError: If no access token could be obtained.
        """
        self._ensure_webhook_secret()
        await self.token_manager.start()
        self._logger.info("client_started", callback=self.address)
        return await self.flush_pending()

    async def stop(self) -> None:
        """Cancel token refreshes and forget seen message IDs."""
        await self.token_manager.stop()
        self.verifier.deduplicator.clear()
        self._logger.info("client_stopped")

    async def __aenter__(self) -> "EventSubClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def _ensure_webhook_secret(self) -> None:
        if not self.webhook_secret:
            self.webhook_secret = secrets.token_hex(32)
            if not self.settings.is_development:
                self._logger.warning(
                    "webhook_secret_generated",
                    detail="No webhook secret configured; generated a random one. "
                    "Set ENVIRONMENT=development if this is expected.",
                )
        self.verifier.secret = self.webhook_secret

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def _build_subscription(
        self,
        event_type: EventSubType | str,
        condition: Condition | dict[str, Any],
    ) -> SubscriptionRequest:
        return SubscriptionRequest(
            type=event_type_value(event_type),
            version="1",
            condition=build_condition(event_type, condition),
            transport=Transport(
                method="webhook",
                callback=self.address,
                secret=self.webhook_secret,
            ),
        )

    async def subscribe(
        self,
        event_type: EventSubType | str,
        condition: Condition | dict[str, Any],
    ) -> Subscription | None:
        """Subscribe to an event type.

        Before the client has a token, the request is queued and submitted
        by start().

        Args:
            event_type: EventSub subscription type.
            condition: Condition matching the event type.

        Returns:
            The created subscription, or None if the request was queued.

        Raises:
            ValueError: If the condition does not fit the event type.
            TwitchAPIError: If Twitch rejects the subscription.
        """
        request = self._build_subscription(event_type, condition)

        if not self.access_token:
            self._pending.append(request)
            self._logger.info(
                "subscription_queued",
                event_type=request.type,
                pending=len(self._pending),
            )
            return None

        return await self._submit(request)

    async def flush_pending(self) -> list[SubscriptionResult]:
        """Submit every queued subscription request in parallel.

        Returns:
            One result per request, in queue order.

        Raises:
            ClientNotStartedError: If there is no access token yet.
        """
        if not self.access_token:
            raise ClientNotStartedError("flush_pending")

        queued = list(self._pending)
        if not queued:
            return []

        results = await asyncio.gather(*(self._submit_pending(r) for r in queued))

        self._logger.info(
            "pending_subscriptions_flushed",
            submitted=len(results),
            failed=sum(1 for r in results if not r.success),
        )
        return list(results)

    async def _submit_pending(self, request: SubscriptionRequest) -> SubscriptionResult:
        try:
            subscription = await call_with_retry(
                lambda: self._submit(request),
                self._retry_config,
                operation="subscribe",
            )
        except EventSubError as e:
            self._logger.warning(
                "subscription_submit_failed",
                event_type=request.type,
                error=str(e),
            )
            await self.events.publish(SUBSCRIPTION_FAILED_EVENT, request, e)
            return SubscriptionResult(request=request, error=e)

        if request in self._pending:
            self._pending.remove(request)
        return SubscriptionResult(request=request, subscription=subscription)

    async def _submit(self, request: SubscriptionRequest) -> Subscription:
        if request.transport.secret is None:
            request.transport.secret = self.webhook_secret

        response = await (
            self._builder("POST")
            .add_header("Content-Type", "application/json")
            .set_body(request.to_payload())
            .send()
        )
        if response.status_code not in (200, 202):
            raise TwitchAPIError(response.status_code, response.text)

        created = self._parse_subscription_list(response)
        if not created.data:
            raise TwitchAPIError(response.status_code, "Subscription response contained no data")

        subscription = created.data[0]
        self._logger.info(
            "subscription_created",
            subscription_id=subscription.id,
            event_type=subscription.type,
            status=subscription.status,
        )
        return subscription

    async def get_subscriptions(
        self,
        status: SubscriptionStatus | str | None = None,
        *,
        after: str | None = None,
    ) -> SubscriptionList:
        """List subscriptions created by this application.

        Args:
            status: Only return subscriptions with this status.
            after: Pagination cursor from a previous page.

        Raises:
            ClientNotStartedError: If there is no access token yet.
            TwitchAPIError: If the request fails.
        """
        if not self.access_token:
            raise ClientNotStartedError("get_subscriptions")

        builder = self._builder("GET")
        if status:
            builder.add_param(
                "status", status.value if isinstance(status, SubscriptionStatus) else status
            )
        if after:
            builder.add_param("after", after)

        response = await builder.send()
        if response.status_code != 200:
            raise TwitchAPIError(response.status_code, response.text)
        return self._parse_subscription_list(response)

    async def delete_subscription(self, subscription_id: str) -> bool:
        """Delete a subscription by ID.

        Returns:
            True once Twitch confirms the deletion.

        Raises:
            ClientNotStartedError: If there is no access token yet.
            ValueError: If subscription_id is empty.
            TwitchAPIError: If the request fails.
        """
        if not self.access_token:
            raise ClientNotStartedError("delete_subscription")
        if not subscription_id:
            raise ValueError(f"Expected a subscription id, received {subscription_id!r}")

        response = await self._builder("DELETE").add_param("id", subscription_id).send()
        if response.status_code not in (200, 204):
            raise TwitchAPIError(response.status_code, response.text)

        self._logger.info("subscription_deleted", subscription_id=subscription_id)
        return True

    @staticmethod
    def _parse_subscription_list(response: httpx.Response) -> SubscriptionList:
        try:
            return SubscriptionList.model_validate(response.json())
        except ValueError as e:
            raise TwitchAPIError(
                response.status_code, f"Malformed subscription response: {e}"
            ) from e

    def _builder(self, method: HttpMethod) -> TwitchAPIRequestBuilder:
        return (
            TwitchAPIRequestBuilder(self._http_client, timeout=self.settings.HTTP_TIMEOUT_SECONDS)
            .set_method(method)
            .set_url(SUBSCRIPTIONS_URL)
            .set_token(self.access_token or "")
            .set_client_id(self.client_id or "")
        )

    # ------------------------------------------------------------------
    # Webhook callback
    # ------------------------------------------------------------------

    def listener(self) -> Listener:
        """Get a FastAPI endpoint function for the webhook callback."""
        return build_listener(self.handle_webhook)

    async def handle_webhook(
        self,
        headers: Mapping[str, str],
        body: bytes | str | dict[str, Any],
    ) -> WebhookResponse:
        """Verify and dispatch one webhook request.

        Args:
            headers: Request headers (matched case-insensitively).
            body: Raw body bytes, or a decoded / pre-parsed body. The
                signature only matches the exact bytes Twitch sent.

        Returns:
            Response to send back to Twitch.
        """
        lowered = {key.lower(): value for key, value in headers.items()}

        if isinstance(body, dict):
            raw_body = json.dumps(body, separators=(",", ":")).encode("utf-8")
        elif isinstance(body, str):
            raw_body = body.encode("utf-8")
        else:
            raw_body = body

        result = self.verifier.verify(
            raw_body,
            lowered.get(MESSAGE_ID_HEADER.lower()),
            lowered.get(MESSAGE_TIMESTAMP_HEADER.lower()),
            lowered.get(MESSAGE_SIGNATURE_HEADER.lower()),
        )
        if not result.is_valid:
            return WebhookResponse(result.status)

        # From here on the message is known to come from Twitch
        if isinstance(body, dict):
            message: Any = body
        else:
            try:
                message = json.loads(raw_body)
            except ValueError as e:
                self._logger.error("webhook_body_not_json", error=str(e))
                await self.events.publish(ERROR_EVENT, e)
                return WebhookResponse(400)

        if not isinstance(message, dict):
            error = TypeError(f"Expected a JSON object body, received {type(message).__name__}")
            self._logger.error("webhook_body_not_object", error=str(error))
            await self.events.publish(ERROR_EVENT, error)
            return WebhookResponse(400)

        return await self.dispatcher.dispatch(lowered.get(MESSAGE_TYPE_HEADER.lower()), message)
