"""Karla webhook signature verification with replay protection.

The ``Karla-Signature`` header carries ``t=<unix_ts>,v1=<hex>`` where the hex
value is HMAC-SHA256 over ``"<t>.<raw body>"`` keyed with the shared secret.
Requests whose timestamp is more than the tolerance away from the receiver's
clock are rejected before the HMAC is compared.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "karla-signature"
DEFAULT_TOLERANCE_SECONDS = 300


class RejectionReason(str, Enum):
    MISSING_SIGNATURE = "missing_signature"
    MALFORMED_HEADER = "malformed_header"
    INVALID_SIGNATURE = "invalid_signature"
    TIMESTAMP_TOO_OLD = "timestamp_too_old"


@dataclass(frozen=True)
class ParsedSignature:
    timestamp: int
    signature: str


@dataclass(frozen=True)
class VerifyResult:
    accepted: bool
    reason: RejectionReason | None = None

    @classmethod
    def ok(cls) -> VerifyResult:
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> VerifyResult:
        return cls(accepted=False, reason=reason)


def parse_signature_header(header: str) -> ParsedSignature | None:
    """Parse ``t=<int>,v1=<hex>``; return None when either part is unusable.

    Pairs are split on the first ``=``; pairs without one are ignored.
    A non-integer timestamp makes the whole header unusable.
    """
    parts: dict[str, str] = {}
    for part in header.split(","):
        key, sep, value = part.partition("=")
        if sep:
            parts[key.strip()] = value.strip()

    if "t" not in parts or "v1" not in parts:
        return None

    try:
        timestamp = int(parts["t"])
    except ValueError:
        return None
    return ParsedSignature(timestamp=timestamp, signature=parts["v1"])


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 of ``"<timestamp>.<payload>"``."""
    signed_payload = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def build_signature_header(payload: bytes, secret: str, timestamp: int) -> str:
    """Build a header value the way Karla signs outgoing webhooks."""
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


def verify(
    signature_header: str | None,
    raw_payload: bytes,
    secret: str,
    now: int | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> VerifyResult:
    """Verify a signed webhook payload. Never raises."""
    if not signature_header:
        return VerifyResult.rejected(RejectionReason.MISSING_SIGNATURE)

    parsed = parse_signature_header(signature_header)
    if parsed is None:
        return VerifyResult.rejected(RejectionReason.MALFORMED_HEADER)

    current = int(time.time()) if now is None else now
    age = abs(current - parsed.timestamp)
    if age > tolerance_seconds:
        logger.warning(
            "Webhook timestamp too old",
            extra={
                "component": "webhook.receiver",
                "timestamp": parsed.timestamp,
                "current_time": current,
                "age_seconds": age,
            },
        )
        return VerifyResult.rejected(RejectionReason.TIMESTAMP_TOO_OLD)

    expected = compute_signature(raw_payload, secret or "", parsed.timestamp)
    # Constant-time comparison; both sides encoded so non-ASCII input cannot raise
    if hmac.compare_digest(expected.encode(), parsed.signature.encode()):
        return VerifyResult.ok()
    return VerifyResult.rejected(RejectionReason.INVALID_SIGNATURE)


class WebhookVerifier:
    """Binds a shared secret and tolerance to :func:`verify`."""

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._secret = secret
        self._tolerance_seconds = tolerance_seconds

    def verify(
        self,
        signature_header: str | None,
        raw_payload: bytes,
        now: int | None = None,
    ) -> VerifyResult:
        return verify(
            signature_header,
            raw_payload,
            self._secret,
            now=now,
            tolerance_seconds=self._tolerance_seconds,
        )

    def verify_headers(
        self,
        headers: Mapping[str, str],
        raw_payload: bytes,
        now: int | None = None,
    ) -> VerifyResult:
        """Verify using a lowercase or case-insensitive header mapping."""
        return self.verify(headers.get(SIGNATURE_HEADER), raw_payload, now=now)
