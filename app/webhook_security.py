"""
Stripe webhook signature verification.

Stripe signs every delivery with the endpoint secret:
    Stripe-Signature: t=<unix timestamp>,v1=<hex hmac>[,v1=<hex hmac>...]
where the HMAC-SHA256 covers "<timestamp>.<raw body>". Deliveries older
than five minutes are rejected to stop replays.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """True when the unix timestamp is within `max_age` seconds of now"""
    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def parse_signature_header(header: str) -> tuple[Optional[str], list[str]]:
    """Split a Stripe-Signature header into its timestamp and v1 signatures"""
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def sign_stripe_payload(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for `payload`"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = compute_hmac_sha256(secret, f"{timestamp}.".encode() + payload)
    return f"t={timestamp},v1={signature}"


async def verify_stripe_webhook(request: Request, secret: str) -> bytes:
    """
    Verify the Stripe-Signature header of `request` against `secret`.

    Returns the raw body on success; raises 401 otherwise.
    """
    raw_body = await request.body()
    header = request.headers.get("Stripe-Signature", "")
    if not header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    timestamp, signatures = parse_signature_header(header)
    if not timestamp or not signatures:
        logger.warning("🚫 Stripe webhook invalid signature format")
        raise HTTPException(status_code=401, detail="Invalid signature format")

    if not verify_timestamp(timestamp):
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    expected = compute_hmac_sha256(secret, f"{timestamp}.".encode() + raw_body)
    if not any(constant_time_compare(expected, s) for s in signatures):
        logger.warning("🚫 Stripe webhook signature mismatch")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.debug("✅ Stripe webhook signature verified")
    return raw_body
