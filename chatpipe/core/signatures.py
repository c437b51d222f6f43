"""HMAC signatures for messages exchanged over HTTP."""

import hashlib
import hmac

SIGNATURE_HEADER = "X-Chatpipe-Signature"


def sign_payload(payload: bytes, secret: str) -> str:
    """Signature header value for ``payload`` (format: sha256=<hex>)."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(
    payload: bytes,
    signature: str | None,
    secret: str
) -> bool:
    """Verify the HMAC signature of a request body.

    Args:
        payload: Raw request body
        signature: Signature from header (format: sha256=<hex>)
        secret: Shared secret for HMAC

    Returns:
        True if signature is valid or no secret configured
    """
    if not secret:
        # No secret configured, skip verification
        return True

    if not signature:
        return False

    if signature.startswith("sha256="):
        signature = signature[7:]

    expected = hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(signature, expected)
