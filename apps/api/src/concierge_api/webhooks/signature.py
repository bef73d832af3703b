"""Scheduling webhook signature verification.

Calendly signs deliveries with ``t=<unix-ts>,v1=<hex>`` where v1 is
HMAC-SHA256(signing_key, "<t>.<raw body>"). That is the same scheme Stripe
uses, so verification goes through ``stripe.WebhookSignature``.
"""

import logging

import stripe

logger = logging.getLogger("concierge-webhooks")

SIGNATURE_HEADER = "Calendly-Webhook-Signature"

# Reject replays older than this
SIGNATURE_TOLERANCE_SECONDS = 300


class InvalidSignatureError(Exception):
    """Raised when a webhook signature is missing or does not verify."""

    pass


def verify_signature(
    payload: bytes,
    signature: str | None,
    signing_key: str,
    tolerance: int | None = SIGNATURE_TOLERANCE_SECONDS,
) -> None:
    """Verify a signed delivery.

    Args:
        payload: Raw request body, exactly as received.
        signature: Value of the signature header (may be None).
        signing_key: Shared webhook signing key.
        tolerance: Maximum age of the timestamp in seconds, None to skip.

    Raises:
        InvalidSignatureError: If the header is missing, malformed, stale,
            or the HMAC does not match.
    """
    if not signature:
        raise InvalidSignatureError("Missing signature header")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            signature,
            signing_key,
            tolerance,
        )
    except UnicodeDecodeError as e:
        raise InvalidSignatureError("Payload is not valid UTF-8") from e
    except stripe.SignatureVerificationError as e:
        raise InvalidSignatureError(str(e)) from e
