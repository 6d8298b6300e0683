"""Fluent builder for outbound Twitch API requests.

The builder only assembles and sends a single request. Status handling,
retries and parsing are left to the caller.

Example:
    response = await (
        TwitchAPIRequestBuilder()
        .set_method("GET")
        .set_url(SUBSCRIPTIONS_URL)
        .set_token(access_token)
        .set_client_id(client_id)
        .add_param("status", "enabled")
        .send()
    )
"""

from typing import Any, Literal

import httpx
import structlog

from eventsub.errors import ConfigurationError, TwitchAPIError

logger = structlog.get_logger(__name__)

HttpMethod = Literal["GET", "POST", "DELETE"]


class TwitchAPIRequestBuilder:
    """Accumulates method, URL, headers, params and body for one request."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the builder.

        Args:
            http_client: Client to send through. A short-lived client is
                created per request when omitted.
            timeout: Timeout used for the short-lived client.
        """
        self._http_client = http_client
        self._timeout = timeout
        self.method: HttpMethod | None = None
        self.url: str | None = None
        self.headers: dict[str, str] = {}
        self.params: dict[str, str] = {}
        self.body: Any = None

    def set_method(self, method: HttpMethod) -> "TwitchAPIRequestBuilder":
        self.method = method
        return self

    def set_url(self, url: str) -> "TwitchAPIRequestBuilder":
        self.url = url
        return self

    def add_header(
        self, name: str, value: str, lowercase: bool = True
    ) -> "TwitchAPIRequestBuilder":
        """Add a header; names are lower-cased unless told otherwise."""
        self.headers[name.lower() if lowercase else name] = value
        return self

    def add_param(
        self, key: str, value: str, lowercase: bool = False
    ) -> "TwitchAPIRequestBuilder":
        """Add a query parameter; keys keep their case by default."""
        self.params[key.lower() if lowercase else key] = value
        return self

    def set_token(self, token: str) -> "TwitchAPIRequestBuilder":
        return self.add_header("Authorization", f"Bearer {token}")

    def set_client_id(self, client_id: str) -> "TwitchAPIRequestBuilder":
        return self.add_header("Client-Id", client_id)

    def set_body(self, body: Any) -> "TwitchAPIRequestBuilder":
        self.body = body
        return self

    async def send(self) -> httpx.Response:
        """Send the request.

        Returns:
            Raw HTTP response, whatever its status.

        Raises:
            ConfigurationError: If no URL has been set.
            TwitchAPIError: If the request could not be sent (status 0).
        """
        if not self.url:
            raise ConfigurationError("Target URL needs to be set before sending a request")

        method = self.method or "GET"
        request_kwargs: dict[str, Any] = {
            "params": self.params,
            "headers": self.headers,
        }
        if self.body is not None:
            request_kwargs["json"] = self.body

        logger.debug("twitch_api_request", method=method, url=self.url)

        try:
            if self._http_client is not None:
                return await self._http_client.request(method, self.url, **request_kwargs)

            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, self.url, **request_kwargs)

        except httpx.RequestError as e:
            logger.warning(
                "twitch_api_request_failed",
                method=method,
                url=self.url,
                error=str(e),
            )
            raise TwitchAPIError(0, str(e)) from e
