"""Webhook message verification.

Provides HMAC signature verification, timestamp freshness checks and
message ID deduplication for inbound EventSub webhook requests.

Checks run in a fixed order:
1. All of message ID, timestamp and signature must be present (400).
2. A message ID seen within the window is a duplicate (204). Otherwise it
   is recorded, whatever the outcome of the remaining checks.
3. The timestamp must parse and be no older than the window (400).
4. HMAC(secret, message_id + timestamp + raw_body) must match (200/400).

`is_valid` means "accepted": only a 200 result is valid.
"""

import hashlib
import hmac
import re
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from eventsub.config import DEFAULT_DEDUP_WINDOW_SECONDS

logger = structlog.get_logger(__name__)

# Inbound header names
MESSAGE_ID_HEADER = "Twitch-Eventsub-Message-Id"
MESSAGE_TIMESTAMP_HEADER = "Twitch-Eventsub-Message-Timestamp"
MESSAGE_SIGNATURE_HEADER = "Twitch-Eventsub-Message-Signature"
MESSAGE_TYPE_HEADER = "Twitch-Eventsub-Message-Type"

SUPPORTED_ALGORITHMS = frozenset({"sha1", "sha256", "sha384", "sha512"})

# Twitch sends RFC 3339 timestamps with nanosecond precision
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one webhook request.

    Attributes:
        status: HTTP status to answer the request with.
        is_valid: True only when the request is accepted for dispatch.
        reason: Short machine-readable reason for rejection.
    """

    status: int
    is_valid: bool
    reason: str | None = None


class MessageDeduplicator:
    """Remembers message IDs for a fixed window.

    Entries are kept as (message_id -> deadline) in insertion order. Every
    entry gets the same window, so deadlines are non-decreasing and expired
    entries are always at the front; they are swept lazily on each lookup.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_DEDUP_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, message_id: object) -> bool:
        self.sweep()
        return message_id in self._seen

    def sweep(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0
        while self._seen:
            message_id, deadline = next(iter(self._seen.items()))
            if deadline > now:
                break
            del self._seen[message_id]
            removed += 1
        return removed

    def check_and_record(self, message_id: str) -> bool:
        """Record a message ID unless it is already known.

        Args:
            message_id: Inbound message identifier.

        Returns:
            True if the ID was already seen within the window.
        """
        self.sweep()
        if message_id in self._seen:
            return True
        self._seen[message_id] = self._clock() + self.window_seconds
        return False

    def clear(self) -> None:
        self._seen.clear()


def parse_timestamp(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Fractions beyond microseconds are truncated and naive values are
    treated as UTC.

    Returns:
        Parsed datetime, or None if the value is not a timestamp.
    """
    normalized = _FRACTION_RE.sub(r"\1", value.strip())
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def compute_signature(
    secret: str,
    message_id: str,
    timestamp: str,
    body: bytes,
    *,
    algorithm: str = "sha256",
) -> str:
    """Compute the hex HMAC of message_id + timestamp + body.

    Args:
        secret: Webhook secret shared with Twitch.
        message_id: Message ID header value.
        timestamp: Timestamp header value, exactly as received.
        body: Raw request body.
        algorithm: hashlib digest name.

    Returns:
        Hex digest.
    """
    return hmac.new(
        secret.encode("utf-8"),
        message_id.encode("utf-8") + timestamp.encode("utf-8") + body,
        getattr(hashlib, algorithm),
    ).hexdigest()


def sign_message(
    secret: str,
    message_id: str,
    timestamp: str,
    body: bytes,
    *,
    algorithm: str = "sha256",
) -> str:
    """Build a signature header value ("<algorithm>=<hexdigest>")."""
    digest = compute_signature(secret, message_id, timestamp, body, algorithm=algorithm)
    return f"{algorithm}={digest}"


class WebhookVerifier:
    """Verifies inbound webhook requests against a shared secret.

    Owns the deduplication state; one verifier should serve all requests
    for a callback.
    """

    def __init__(
        self,
        secret: str | None = None,
        *,
        window_seconds: float = DEFAULT_DEDUP_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        """Initialize the verifier.

        Args:
            secret: Webhook secret. May be set later, before the first request.
            window_seconds: Dedup window and maximum message age.
            clock: Monotonic clock used for dedup expiry.
            now: Wall clock used for timestamp freshness.
        """
        self.secret = secret
        self.window_seconds = window_seconds
        self.deduplicator = MessageDeduplicator(window_seconds, clock=clock)
        self._now = now
        self._logger = logger.bind(component="webhook_verifier")

    def verify(
        self,
        body: bytes,
        message_id: str | None,
        timestamp: str | None,
        signature: str | None,
    ) -> VerificationResult:
        """Verify one webhook request.

        Args:
            body: Raw request body, exactly as received.
            message_id: Message ID header value.
            timestamp: Timestamp header value.
            signature: Signature header value ("sha256=<hex>").

        Returns:
            VerificationResult with the HTTP status to answer with.
        """
        if not message_id or not timestamp or not signature:
            self._logger.warning(
                "webhook_missing_headers",
                has_message_id=bool(message_id),
                has_timestamp=bool(timestamp),
                has_signature=bool(signature),
            )
            return VerificationResult(400, False, "missing_headers")

        if self.deduplicator.check_and_record(message_id):
            self._logger.info("webhook_duplicate_message", message_id=message_id)
            return VerificationResult(204, False, "duplicate")

        sent_at = parse_timestamp(timestamp)
        if sent_at is None:
            self._logger.warning(
                "webhook_invalid_timestamp",
                message_id=message_id,
                timestamp=timestamp,
            )
            return VerificationResult(400, False, "invalid_timestamp")

        age = self._now() - sent_at
        if age > timedelta(seconds=self.window_seconds):
            self._logger.warning(
                "webhook_stale_timestamp",
                message_id=message_id,
                age_seconds=age.total_seconds(),
                max_age=self.window_seconds,
            )
            return VerificationResult(400, False, "stale_timestamp")

        if not self._signature_matches(body, message_id, timestamp, signature):
            self._logger.warning("webhook_signature_invalid", message_id=message_id)
            return VerificationResult(400, False, "invalid_signature")

        self._logger.debug("webhook_signature_verified", message_id=message_id)
        return VerificationResult(200, True)

    def _signature_matches(
        self,
        body: bytes,
        message_id: str,
        timestamp: str,
        signature: str,
    ) -> bool:
        if not self.secret:
            self._logger.error("webhook_secret_not_set", message_id=message_id)
            return False

        algorithm, _, expected = signature.partition("=")
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS or not expected:
            return False

        actual = compute_signature(
            self.secret, message_id, timestamp, body, algorithm=algorithm
        )

        # Constant-time comparison
        return hmac.compare_digest(expected.lower().encode("utf-8"), actual.encode("utf-8"))
