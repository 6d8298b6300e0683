"""FastAPI integration for the webhook callback.

The client's framework-independent `handle_webhook` is wrapped into a
FastAPI endpoint that reads the raw request body (the signature is
computed over the exact bytes Twitch sent).
"""

from collections.abc import Awaitable, Callable, Mapping

from fastapi import APIRouter, FastAPI, Request, Response

from eventsub.webhooks.dispatcher import WebhookResponse

WebhookHandler = Callable[[Mapping[str, str], bytes], Awaitable[WebhookResponse]]
Listener = Callable[[Request], Awaitable[Response]]


def to_response(result: WebhookResponse) -> Response:
    """Convert a WebhookResponse into a Starlette response."""
    return Response(
        content=result.body,
        status_code=result.status,
        media_type=result.media_type,
    )


def build_listener(handle: WebhookHandler) -> Listener:
    """Wrap a webhook handler into a FastAPI endpoint function.

    Args:
        handle: Coroutine taking (headers, raw_body).

    Returns:
        Endpoint accepting a FastAPI Request.
    """

    async def listener(request: Request) -> Response:
        body = await request.body()
        result = await handle(request.headers, body)
        return to_response(result)

    return listener


def normalize_path(path: str | None) -> str:
    """Route path for the callback; always starts with a slash."""
    return "/" + (path or "").lstrip("/")


def create_webhook_router(handle: WebhookHandler, path: str | None = None) -> APIRouter:
    """Create a router exposing the callback as a POST route.

    Args:
        handle: Webhook handler, usually EventSubClient.handle_webhook.
        path: Route path (defaults to "/").

    Returns:
        APIRouter to include in an application.
    """
    router = APIRouter(tags=["EventSub"])
    router.add_api_route(
        normalize_path(path),
        build_listener(handle),
        methods=["POST"],
        include_in_schema=False,
    )
    return router


def mount_webhook(app: FastAPI, handle: WebhookHandler, path: str | None = None) -> None:
    """Register the callback route on an existing application."""
    app.include_router(create_webhook_router(handle, path))
