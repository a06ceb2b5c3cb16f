from .payment import PAYMENT_TTL, TERMINAL_STATUSES, Payment, PaymentRequest, PaymentStatus
from .webhook import WebhookEvent, WebhookNotification
from .delivery import DeliveryAttempt
from .challenge import PaymentChallenge, ResourceResponse

__all__ = [
    "PAYMENT_TTL", "TERMINAL_STATUSES",
    "Payment", "PaymentRequest", "PaymentStatus",
    "WebhookEvent", "WebhookNotification",
    "DeliveryAttempt",
    "PaymentChallenge", "ResourceResponse",
]
