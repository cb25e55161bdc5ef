"""HMAC-SHA256 request signatures.

The signature is the lowercase hex HMAC-SHA256 of the exact request body
bytes, keyed by the endpoint's shared secret. Receivers must verify the
raw bytes they received; re-serializing the JSON can change the bytes and
invalidate the signature.
"""

from __future__ import annotations

import hashlib
import hmac


BytesLike = bytes | bytearray | memoryview


def _to_bytes(value: BytesLike | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def sign(body: BytesLike, secret: str) -> str:
    """Compute the HMAC-SHA256 signature for a request body.

    Args:
        body: Exact bytes sent as the request body.
        secret: Shared secret for HMAC.

    Returns:
        Lowercase hexadecimal digest.
    """
    return hmac.new(
        key=_to_bytes(secret),
        msg=_to_bytes(body),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify(body: BytesLike, signature: str, secret: str) -> bool:
    """Verify an HMAC-SHA256 signature in constant time.

    Malformed input (wrong types, non-ASCII signature) returns False
    rather than raising.

    Args:
        body: Raw body bytes as received.
        signature: Value of the signature header.
        secret: Shared secret for HMAC.

    Returns:
        True if the signature matches, False otherwise.
    """
    if not isinstance(body, (bytes, bytearray, memoryview, str)) or not isinstance(secret, str):
        return False
    if not isinstance(signature, str) or not signature.isascii():
        return False
    expected = sign(body, secret)
    return hmac.compare_digest(expected, signature)


__all__ = ["sign", "verify"]
