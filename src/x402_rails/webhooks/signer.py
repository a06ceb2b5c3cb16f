import hashlib
import hmac
import json

from x402_rails.errors import ConfigurationError
from x402_rails.models.webhook import WebhookNotification

SIGNATURE_HEADER = "X-Webhook-Signature"


def _to_bytes(payload: bytes | str) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return payload


def compute_signature(payload: bytes | str, secret: str) -> str:
    """HMAC-SHA256 over the exact payload bytes, hex encoded."""
    if not secret:
        raise ConfigurationError("webhook secret is not configured")
    return hmac.new(secret.encode("utf-8"), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(payload: bytes | str, signature: str | None, secret: str | None) -> bool:
    """Check ``signature`` against the payload in constant time.

    Returns False on any mismatch, including an empty or non-ASCII signature.
    Raises ConfigurationError only when no secret is configured.
    """
    if not secret:
        raise ConfigurationError("webhook secret is not configured")
    if not signature or not signature.isascii():
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature)


def encode_notification(notification: WebhookNotification) -> bytes:
    return json.dumps(notification.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")


class WebhookSigner:
    """Signs and verifies webhook bodies using HMAC-SHA256."""

    def __init__(self, secret: str):
        if not secret:
            raise ConfigurationError("webhook secret is not configured")
        self.secret = secret

    def sign(self, payload: bytes | str) -> str:
        return compute_signature(payload, self.secret)

    def verify(self, payload: bytes | str, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.secret)

    def sign_notification(self, notification: WebhookNotification) -> tuple[bytes, str]:
        """Serialize the notification and sign the exact bytes that will be sent."""
        body = encode_notification(notification)
        signature = self.sign(body)
        notification.signature = signature
        return body, signature
