"""App access token acquisition and refresh.

The manager performs an OAuth2 client credentials exchange on start and
then refreshes the token on a fixed interval. Every successful refresh is
published as a "refresh" event carrying the new access token; a refresh
that still fails after retries is published as "token_refresh_failed".
"""

import asyncio
import contextlib

import httpx
import structlog
from pydantic import BaseModel

from eventsub.api.constants import OAUTH2_TOKEN_URL
from eventsub.api.request_builder import TwitchAPIRequestBuilder
from eventsub.config import DEFAULT_TOKEN_REFRESH_INTERVAL_SECONDS
from eventsub.errors import (
    EventSubError,
    RetryConfig,
    TokenRefreshError,
    TwitchAPIError,
    call_with_retry,
)
from eventsub.events.emitter import EventSubject

logger = structlog.get_logger(__name__)

REFRESH_EVENT = "refresh"
REFRESH_FAILED_EVENT = "token_refresh_failed"


class TokenResponse(BaseModel):
    """Response of the OAuth2 token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "bearer"


class AccessTokenManager:
    """Owns the app access token and keeps it fresh.

    Attributes:
        access_token: Current token, None until the first exchange succeeds.
        refresh_interval: Seconds between scheduled refreshes.
        events: Subject publishing "refresh" and "token_refresh_failed".
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        refresh_interval: float = DEFAULT_TOKEN_REFRESH_INTERVAL_SECONDS,
        retry_config: RetryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self.refresh_interval = refresh_interval
        self._retry_config = retry_config or RetryConfig()
        self._http_client = http_client
        self._timeout = timeout

        self.access_token: str | None = None
        self._refresh_token: str | None = None
        self.events = EventSubject()
        self._refresh_task: asyncio.Task[None] | None = None
        self._logger = logger.bind(component="token_manager")

    @property
    def is_running(self) -> bool:
        """Whether the refresh loop is scheduled."""
        return self._refresh_task is not None and not self._refresh_task.done()

    async def start(self) -> str:
        """Acquire the initial token and schedule periodic refreshes.

        Returns:
            The initial access token.

        Raises:
            TokenRefreshError: If the initial exchange fails after retries.
        """
        await self.stop()
        token = await self.refresh()
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        self._logger.info(
            "token_refresh_scheduled",
            interval_seconds=self.refresh_interval,
        )
        return token

    async def stop(self) -> None:
        """Cancel the refresh loop. Safe to call more than once."""
        task = self._refresh_task
        self._refresh_task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._logger.info("token_refresh_stopped")

    async def refresh(self) -> str:
        """Exchange client credentials for a new access token.

        Returns:
            The new access token.

        Raises:
            TokenRefreshError: If every attempt fails.
        """
        attempts = 0

        async def exchange() -> TokenResponse:
            nonlocal attempts
            attempts += 1
            return await self._exchange()

        try:
            token = await call_with_retry(
                exchange, self._retry_config, operation="token_exchange"
            )
        except EventSubError as e:
            self._logger.error(
                "token_refresh_failed",
                attempts=attempts,
                error=str(e),
            )
            raise TokenRefreshError(
                "Failed to obtain an access token",
                original_error=e,
                attempts=attempts,
            ) from e

        self.access_token = token.access_token
        self._refresh_token = token.refresh_token
        self._logger.info("token_refreshed", expires_in=token.expires_in)

        await self.events.publish(REFRESH_EVENT, token.access_token)
        return token.access_token

    async def _exchange(self) -> TokenResponse:
        response = await (
            TwitchAPIRequestBuilder(self._http_client, timeout=self._timeout)
            .set_method("POST")
            .set_url(OAUTH2_TOKEN_URL)
            .add_param("client_id", self._client_id)
            .add_param("client_secret", self._client_secret)
            .add_param("grant_type", "client_credentials")
            .send()
        )

        if response.status_code != 200:
            raise TwitchAPIError(response.status_code, response.text)

        try:
            return TokenResponse.model_validate(response.json())
        except ValueError as e:
            raise TwitchAPIError(response.status_code, f"Malformed token response: {e}") from e

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except TokenRefreshError as e:
                # Keep the previous token and try again next interval
                await self.events.publish(REFRESH_FAILED_EVENT, e)
