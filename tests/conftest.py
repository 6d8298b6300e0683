"""Shared fixtures: an in-memory fake of the Twitch API."""

import json
from typing import Any

import httpx
import pytest

from eventsub.config import Settings
from eventsub.errors import RetryConfig


class FakeTwitchAPI:
    """Serves the token and subscriptions endpoints from memory.

    Status and raw body overrides let tests simulate upstream failures;
    every request is recorded for assertions.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_statuses: list[int] = []
        self.subscribe_statuses: list[int] = []
        self.raw_subscribe_bodies: list[str] = []
        self.raw_list_body: str | None = None
        self.token_counter = 0
        self.subscription_counter = 0
        self.subscriptions: dict[str, dict[str, Any]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "id.twitch.tv":
            status = self.token_statuses.pop(0) if self.token_statuses else 200
            if status != 200:
                return httpx.Response(status, text="token exchange failed")
            self.token_counter += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self.token_counter}",
                    "expires_in": 5011271,
                    "token_type": "bearer",
                },
            )

        if request.method == "POST":
            status = self.subscribe_statuses.pop(0) if self.subscribe_statuses else 202
            if status != 202:
                return httpx.Response(status, text="subscription failed")
            if self.raw_subscribe_bodies:
                return httpx.Response(202, text=self.raw_subscribe_bodies.pop(0))
            body = json.loads(request.content)
            self.subscription_counter += 1
            record = {
                "id": f"sub-{self.subscription_counter}",
                "status": "webhook_callback_verification_pending",
                "type": body["type"],
                "version": body["version"],
                "cost": 1,
                "condition": body["condition"],
                "transport": {
                    "method": body["transport"]["method"],
                    "callback": body["transport"]["callback"],
                },
                "created_at": "2021-11-16T10:11:12.634234626Z",
            }
            self.subscriptions[record["id"]] = record
            return httpx.Response(
                202,
                json={"data": [record], "total": 1, "total_cost": 1, "max_total_cost": 10000},
            )

        if request.method == "GET":
            if self.raw_list_body is not None:
                return httpx.Response(200, text=self.raw_list_body)
            status_filter = request.url.params.get("status")
            data = [
                s for s in self.subscriptions.values()
                if status_filter is None or s["status"] == status_filter
            ]
            return httpx.Response(
                200,
                json={
                    "data": data,
                    "total": len(data),
                    "total_cost": len(data),
                    "max_total_cost": 10000,
                    "pagination": {},
                },
            )

        if request.method == "DELETE":
            subscription_id = request.url.params.get("id")
            if subscription_id not in self.subscriptions:
                return httpx.Response(404, text="subscription not found")
            del self.subscriptions[subscription_id]
            return httpx.Response(204)

        return httpx.Response(405)

    def requests_to(self, method: str, host: str = "api.twitch.tv") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.host == host]


@pytest.fixture
def twitch_api() -> FakeTwitchAPI:
    """In-memory Twitch API."""
    return FakeTwitchAPI()


@pytest.fixture
def http_client(twitch_api: FakeTwitchAPI) -> httpx.AsyncClient:
    """httpx client routed to the fake Twitch API."""
    return httpx.AsyncClient(transport=httpx.MockTransport(twitch_api.handler))


@pytest.fixture
def no_wait_retry() -> RetryConfig:
    """Retry policy without backoff delays."""
    return RetryConfig(max_attempts=3, min_wait_seconds=0, max_wait_seconds=0, multiplier=0)


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the process environment."""
    return Settings(ENVIRONMENT="development")
