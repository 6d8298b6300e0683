"""Tests for EventSubClient lifecycle and subscription management."""

import json
import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from eventsub.client import EventSubClient, build_callback_address
from eventsub.config import Settings
from eventsub.errors import ClientNotStartedError, ConfigurationError, TwitchAPIError
from eventsub.models.conditions import BroadcasterUserIdCondition, ChannelRaidCondition
from eventsub.models.subscription import EventSubType, SubscriptionStatus
from eventsub.webhooks.verification import sign_message

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def client(http_client, no_wait_retry, settings):
    """Client wired to the fake Twitch API."""
    return EventSubClient(
        client_id="client-id",
        client_secret="client-secret",
        host="example.com",
        path="webhooks/callback",
        webhook_secret="s3cret-webhook-key",
        settings=settings,
        http_client=http_client,
        retry_config=no_wait_retry,
    )


@pytest.fixture
def condition():
    """Broadcaster condition."""
    return BroadcasterUserIdCondition(broadcaster_user_id="1337")


# ============================================================================
# Construction Tests
# ============================================================================


class TestConstruction:
    """Tests for client construction and configuration."""

    def test_callback_address(self, client):
        assert client.address == "https://example.com/webhooks/callback"

    @pytest.mark.parametrize(
        "port,path,expected",
        [
            (None, None, "https://example.com/"),
            (8443, None, "https://example.com:8443/"),
            (8443, "/hooks", "https://example.com:8443/hooks"),
        ],
    )
    def test_build_callback_address(self, port, path, expected):
        assert build_callback_address("example.com", port, path) == expected

    def test_missing_client_id(self, settings):
        with pytest.raises(ConfigurationError, match="client ID"):
            EventSubClient(client_secret="secret", host="example.com", settings=settings)

    def test_missing_client_secret(self, settings):
        with pytest.raises(ConfigurationError, match="client secret"):
            EventSubClient(client_id="id", host="example.com", settings=settings)

    def test_missing_host(self, settings):
        with pytest.raises(ConfigurationError, match="host"):
            EventSubClient(client_id="id", client_secret="secret", host="", settings=settings)

    @pytest.mark.parametrize("secret", ["short", "x" * 101])
    def test_invalid_webhook_secret_length(self, settings, secret):
        with pytest.raises(ConfigurationError, match="Webhook secret"):
            EventSubClient(
                client_id="id",
                client_secret="secret",
                host="example.com",
                webhook_secret=secret,
                settings=settings,
            )

    def test_credentials_from_env(self):
        env = {
            "TWITCH_API_CLIENT_ID": "env-id",
            "TWITCH_API_CLIENT_SECRET": "env-secret",
            "TWITCH_WEBHOOK_SECRET": "env-webhook-secret",
        }
        with patch.dict(os.environ, env, clear=True):
            client = EventSubClient(host="example.com")

        assert client.client_id == "env-id"
        assert client.webhook_secret == "env-webhook-secret"
        assert client.verifier.secret == "env-webhook-secret"

    def test_explicit_arguments_win_over_env(self):
        with patch.dict(os.environ, {"TWITCH_API_CLIENT_ID": "env-id"}, clear=True):
            client = EventSubClient(
                client_id="explicit-id", client_secret="secret", host="example.com"
            )

        assert client.client_id == "explicit-id"


# ============================================================================
# Lifecycle Tests
# ============================================================================


class TestLifecycle:
    """Tests for start/stop and the pending queue."""

    @pytest.mark.asyncio
    async def test_subscribe_before_start_is_queued(self, client, twitch_api, condition):
        result = await client.subscribe(EventSubType.STREAM_ONLINE, condition)

        assert result is None
        assert len(client.pending) == 1
        assert twitch_api.requests == []

    @pytest.mark.asyncio
    async def test_start_submits_queued_exactly_once(self, client, twitch_api, condition):
        await client.subscribe("stream.online", condition)

        results = await client.start()
        await client.stop()

        assert len(results) == 1
        assert results[0].success
        assert results[0].subscription.type == "stream.online"
        assert client.pending == []

        posts = twitch_api.requests_to("POST")
        assert len(posts) == 1
        body = json.loads(posts[0].content)
        assert body == {
            "type": "stream.online",
            "version": "1",
            "condition": {"broadcaster_user_id": "1337"},
            "transport": {
                "method": "webhook",
                "callback": "https://example.com/webhooks/callback",
                "secret": "s3cret-webhook-key",
            },
        }
        assert posts[0].headers["authorization"] == "Bearer token-1"
        assert posts[0].headers["client-id"] == "client-id"

    @pytest.mark.asyncio
    async def test_start_obtains_token(self, client, twitch_api):
        await client.start()
        await client.stop()

        assert client.access_token == "token-1"
        token_request = twitch_api.requests_to("POST", host="id.twitch.tv")[0]
        assert token_request.url.params["grant_type"] == "client_credentials"
        assert token_request.url.params["client_id"] == "client-id"
        assert token_request.url.params["client_secret"] == "client-secret"

    @pytest.mark.asyncio
    async def test_subscribe_after_start_submits_immediately(self, client, condition):
        await client.start()
        subscription = await client.subscribe(EventSubType.STREAM_OFFLINE, condition)
        await client.stop()

        assert subscription is not None
        assert subscription.type == "stream.offline"
        assert client.pending == []

    @pytest.mark.asyncio
    async def test_subscribe_after_start_raises_on_rejection(self, client, twitch_api, condition):
        await client.start()
        twitch_api.subscribe_statuses = [409]

        with pytest.raises(TwitchAPIError) as exc_info:
            await client.subscribe("stream.online", condition)
        await client.stop()

        assert exc_info.value.status == 409

    @pytest.mark.asyncio
    async def test_partial_failure_reported_per_item(self, client, twitch_api, condition):
        failed_handler = MagicMock()
        client.on("subscription_failed", failed_handler)
        await client.subscribe("stream.online", condition)
        await client.subscribe("stream.offline", condition)
        # First submission is rejected outright (4xx, not retried)
        twitch_api.subscribe_statuses = [400]

        results = await client.start()
        await client.stop()

        assert [r.success for r in results].count(True) == 1
        failed = [r for r in results if not r.success]
        assert len(failed) == 1
        assert isinstance(failed[0].error, TwitchAPIError)
        assert client.pending == [failed[0].request]
        failed_handler.assert_called_once_with(failed[0].request, failed[0].error)

    @pytest.mark.asyncio
    async def test_malformed_reply_reported_per_item(self, client, twitch_api, condition):
        failed_handler = MagicMock()
        client.on("subscription_failed", failed_handler)
        await client.subscribe("stream.online", condition)
        await client.subscribe("stream.online", condition)
        twitch_api.raw_subscribe_bodies = ["<html>"]

        results = await client.start()
        await client.stop()

        assert len(results) == 2
        failed = [r for r in results if not r.success]
        assert len(failed) == 1
        assert isinstance(failed[0].error, TwitchAPIError)
        assert failed[0].error.status == 202
        assert "Malformed subscription response" in failed[0].error.message
        assert client.pending == [failed[0].request]
        assert len(twitch_api.requests_to("POST")) == 2
        failed_handler.assert_called_once_with(failed[0].request, failed[0].error)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["<html>", '{"data": [{"id": 1}]}'])
    async def test_direct_subscribe_malformed_reply(self, client, twitch_api, condition, body):
        await client.start()
        twitch_api.raw_subscribe_bodies = [body]

        with pytest.raises(TwitchAPIError, match="Malformed subscription response"):
            await client.subscribe("stream.online", condition)
        await client.stop()

    @pytest.mark.asyncio
    async def test_recoverable_failure_is_retried(self, client, twitch_api, condition):
        await client.subscribe("stream.online", condition)
        twitch_api.subscribe_statuses = [503]

        results = await client.start()
        await client.stop()

        assert results[0].success
        assert len(twitch_api.requests_to("POST")) == 2

    @pytest.mark.asyncio
    async def test_flush_pending_resubmits_failed(self, client, twitch_api, condition):
        await client.subscribe("stream.online", condition)
        twitch_api.subscribe_statuses = [400]
        await client.start()

        results = await client.flush_pending()
        await client.stop()

        assert results[0].success
        assert client.pending == []

    @pytest.mark.asyncio
    async def test_flush_pending_requires_token(self, client):
        with pytest.raises(ClientNotStartedError):
            await client.flush_pending()

    @pytest.mark.asyncio
    async def test_generates_secret_when_missing(self, http_client, no_wait_retry, condition):
        client = EventSubClient(
            client_id="client-id",
            client_secret="client-secret",
            host="example.com",
            settings=Settings(ENVIRONMENT="development"),
            http_client=http_client,
            retry_config=no_wait_retry,
        )
        await client.subscribe("stream.online", condition)
        assert client.webhook_secret is None

        results = await client.start()
        await client.stop()

        assert client.webhook_secret is not None
        assert len(client.webhook_secret) == 64
        assert client.verifier.secret == client.webhook_secret
        assert results[0].request.transport.secret == client.webhook_secret

    @pytest.mark.asyncio
    async def test_context_manager(self, client):
        async with client as started:
            assert started.access_token == "token-1"
            assert started.token_manager.is_running

        assert not client.token_manager.is_running

    @pytest.mark.asyncio
    async def test_token_refresh_failed_forwarded(self, client):
        handler = AsyncMock()
        client.on("token_refresh_failed", handler)
        error = MagicMock()

        await client.token_manager.events.publish("token_refresh_failed", error)

        handler.assert_awaited_once_with(error)

    @pytest.mark.asyncio
    async def test_refresh_updates_access_token(self, client):
        await client.start()
        await client.token_manager.refresh()
        await client.stop()

        assert client.access_token == "token-2"


# ============================================================================
# Subscription API Tests
# ============================================================================


class TestSubscriptionAPI:
    """Tests for list/delete."""

    @pytest.mark.asyncio
    async def test_get_subscriptions_requires_start(self, client, twitch_api):
        with pytest.raises(ClientNotStartedError):
            await client.get_subscriptions()

        assert twitch_api.requests == []

    @pytest.mark.asyncio
    async def test_delete_subscription_requires_start(self, client, twitch_api):
        with pytest.raises(ClientNotStartedError):
            await client.delete_subscription("sub-1")

        assert twitch_api.requests == []

    @pytest.mark.asyncio
    async def test_get_subscriptions(self, client, condition):
        await client.subscribe("stream.online", condition)
        await client.start()

        listing = await client.get_subscriptions()
        filtered = await client.get_subscriptions(SubscriptionStatus.ENABLED)
        await client.stop()

        assert listing.total == 1
        assert listing.data[0].condition == {"broadcaster_user_id": "1337"}
        assert filtered.total == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["not json", '{"data": "nope"}'])
    async def test_get_subscriptions_malformed_reply(self, client, twitch_api, body):
        await client.start()
        twitch_api.raw_list_body = body

        with pytest.raises(TwitchAPIError) as exc_info:
            await client.get_subscriptions()
        await client.stop()

        assert exc_info.value.status == 200
        assert exc_info.value.recoverable is False

    @pytest.mark.asyncio
    async def test_get_subscriptions_sends_status_filter(self, client, twitch_api):
        await client.start()
        await client.get_subscriptions("enabled", after="cursor-1")
        await client.stop()

        request = twitch_api.requests_to("GET")[0]
        assert request.url.params["status"] == "enabled"
        assert request.url.params["after"] == "cursor-1"

    @pytest.mark.asyncio
    async def test_delete_subscription(self, client, twitch_api, condition):
        await client.start()
        subscription = await client.subscribe("stream.online", condition)

        deleted = await client.delete_subscription(subscription.id)
        await client.stop()

        assert deleted is True
        assert twitch_api.subscriptions == {}
        assert twitch_api.requests_to("DELETE")[0].url.params["id"] == subscription.id

    @pytest.mark.asyncio
    async def test_delete_unknown_subscription(self, client):
        await client.start()

        with pytest.raises(TwitchAPIError) as exc_info:
            await client.delete_subscription("missing")
        await client.stop()

        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_delete_requires_id(self, client):
        await client.start()

        with pytest.raises(ValueError, match="subscription id"):
            await client.delete_subscription("")
        await client.stop()

    @pytest.mark.asyncio
    async def test_subscribe_validates_condition(self, client):
        with pytest.raises(ValueError):
            await client.subscribe("channel.raid", {"broadcaster_user_id": "1337"})

        with pytest.raises(ValueError):
            await client.subscribe(
                "stream.online", ChannelRaidCondition(to_broadcaster_user_id="1337")
            )

        assert client.pending == []


# ============================================================================
# handle_webhook Tests
# ============================================================================


class TestHandleWebhook:
    """Tests for the framework-independent webhook entry point."""

    def headers(self, message_type, body, message_id="abc"):
        timestamp = datetime.now(UTC).isoformat()
        return {
            "twitch-eventsub-message-id": message_id,
            "TWITCH-EVENTSUB-MESSAGE-TIMESTAMP": timestamp,
            "Twitch-Eventsub-Message-Signature": sign_message(
                "s3cret-webhook-key", message_id, timestamp, body
            ),
            "Twitch-Eventsub-Message-Type": message_type,
        }

    @pytest.mark.asyncio
    async def test_headers_are_case_insensitive(self, client):
        body = b'{"challenge":"xyz"}'

        response = await client.handle_webhook(
            self.headers("webhook_callback_verification", body), body
        )

        assert response.status == 200
        assert response.body == "xyz"

    @pytest.mark.asyncio
    async def test_accepts_str_body(self, client):
        body = '{"challenge":"xyz"}'

        response = await client.handle_webhook(
            self.headers("webhook_callback_verification", body.encode()), body
        )

        assert response.body == "xyz"

    @pytest.mark.asyncio
    async def test_accepts_parsed_body(self, client):
        message = {"challenge": "xyz"}
        body = json.dumps(message, separators=(",", ":")).encode()

        response = await client.handle_webhook(
            self.headers("webhook_callback_verification", body), message
        )

        assert response.body == "xyz"

    @pytest.mark.asyncio
    async def test_invalid_json_after_verification(self, client):
        error_handler = MagicMock()
        client.on("error", error_handler)
        body = b"not json"

        response = await client.handle_webhook(self.headers("notification", body), body)

        assert response.status == 400
        error_handler.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_object_body(self, client):
        body = b"[1, 2, 3]"

        response = await client.handle_webhook(self.headers("notification", body), body)

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_notification_with_bad_subscription_type(self, client):
        error_handler = MagicMock()
        client.on("error", error_handler)
        body = b'{"subscription":{"type":7},"event":{}}'

        response = await client.handle_webhook(self.headers("notification", body), body)

        assert response.status == 500
        assert isinstance(error_handler.call_args.args[0], TypeError)

    @pytest.mark.asyncio
    async def test_off_removes_handler(self, client):
        handler = MagicMock()
        client.on("revocation", handler).off("revocation", handler)
        body = b'{"subscription":{"id":"sub-1"}}'

        await client.handle_webhook(self.headers("revocation", body), body)

        handler.assert_not_called()
