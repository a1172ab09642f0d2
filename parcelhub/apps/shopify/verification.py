import base64
import hashlib
import hmac


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def verify_signature(secret: str, body: bytes, received: str) -> bool:
    """Constant-time check of a base64 HMAC-SHA256 header. An empty secret never verifies."""
    if not secret or not received:
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode('ascii'), received.strip().encode('utf-8'))
