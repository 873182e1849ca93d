"""
Webhook signature verification.

Inbound provider callbacks are signed with HMAC-SHA256 over the raw request
body using the shared ``webhook_signing_secret``. The signature header has
the form ``sha256=<hex digest>``; a bare hex digest is also accepted.
"""

import hashlib
import hmac
import logging

from clipforge.core.config import get_settings
from clipforge.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-ClipForge-Signature"
SIGNATURE_PREFIX = "sha256="


def compute_webhook_signature(body: bytes, secret: str | None = None) -> str:
    """
    Compute the signature header value for a webhook body.

    Args:
        body: Raw request body bytes
        secret: Signing secret (defaults to settings.webhook_signing_secret)

    Returns:
        Header value in ``sha256=<hex>`` form
    """
    key = (secret or get_settings().webhook_signing_secret).encode("utf-8")
    digest = hmac.new(key, body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(
    body: bytes,
    signature: str | None,
    secret: str | None = None,
) -> None:
    """
    Verify a webhook signature in constant time.

    Args:
        body: Raw request body bytes
        signature: Value of the signature header (may be None)
        secret: Signing secret (defaults to settings.webhook_signing_secret)

    Raises:
        AuthenticationError: If the signature is missing or does not match
    """
    if not signature:
        raise AuthenticationError(message="Missing webhook signature")

    provided = signature.strip()
    if not provided.startswith(SIGNATURE_PREFIX):
        provided = f"{SIGNATURE_PREFIX}{provided}"

    expected = compute_webhook_signature(body, secret)
    if not hmac.compare_digest(expected, provided):
        logger.warning(
            "Rejected webhook with invalid signature",
            extra={"body_bytes": len(body)},
        )
        raise AuthenticationError(message="Invalid webhook signature")
