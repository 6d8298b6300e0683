"""Inbound webhook verification and dispatch.

This module provides:
- WebhookVerifier: signature, freshness and duplicate checks
- NotificationDispatcher: routing of verified messages to local events
- FastAPI helpers to expose the callback endpoint
"""

from eventsub.webhooks.dispatcher import (
    CHALLENGE_EVENT,
    ERROR_EVENT,
    REVOCATION_EVENT,
    MessageType,
    NotificationDispatcher,
    WebhookResponse,
)
from eventsub.webhooks.handler import (
    build_listener,
    create_webhook_router,
    mount_webhook,
    to_response,
)
from eventsub.webhooks.verification import (
    MESSAGE_ID_HEADER,
    MESSAGE_SIGNATURE_HEADER,
    MESSAGE_TIMESTAMP_HEADER,
    MESSAGE_TYPE_HEADER,
    MessageDeduplicator,
    VerificationResult,
    WebhookVerifier,
    compute_signature,
    parse_timestamp,
    sign_message,
)

__all__ = [
    # Dispatch
    "CHALLENGE_EVENT",
    "ERROR_EVENT",
    "REVOCATION_EVENT",
    "MessageType",
    "NotificationDispatcher",
    "WebhookResponse",
    # FastAPI integration
    "build_listener",
    "create_webhook_router",
    "mount_webhook",
    "to_response",
    # Verification
    "MESSAGE_ID_HEADER",
    "MESSAGE_SIGNATURE_HEADER",
    "MESSAGE_TIMESTAMP_HEADER",
    "MESSAGE_TYPE_HEADER",
    "MessageDeduplicator",
    "VerificationResult",
    "WebhookVerifier",
    "compute_signature",
    "parse_timestamp",
    "sign_message",
]
