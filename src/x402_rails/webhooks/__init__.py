from .signer import (
    SIGNATURE_HEADER,
    WebhookSigner,
    compute_signature,
    encode_notification,
    verify_signature,
)
from .dispatcher import WebhookDispatcher
from .receiver import WebhookReceiver

__all__ = [
    "SIGNATURE_HEADER",
    "WebhookSigner",
    "compute_signature",
    "encode_notification",
    "verify_signature",
    "WebhookDispatcher",
    "WebhookReceiver",
]
