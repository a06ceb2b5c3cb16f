from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from x402_rails.models.payment import PaymentStatus


class WebhookEvent(Enum):
    CREATED = "payment.created"
    PROCESSING = "payment.processing"
    COMPLETED = "payment.completed"
    FAILED = "payment.failed"
    CANCELLED = "payment.cancelled"
    EXPIRED = "payment.expired"

    @classmethod
    def for_status(cls, status: PaymentStatus) -> "WebhookEvent":
        return _STATUS_EVENTS[status]

    @property
    def status(self) -> PaymentStatus:
        return _EVENT_STATUSES[self]


_STATUS_EVENTS = {
    PaymentStatus.AWAITING_PAYMENT: WebhookEvent.CREATED,
    PaymentStatus.PROCESSING: WebhookEvent.PROCESSING,
    PaymentStatus.COMPLETED: WebhookEvent.COMPLETED,
    PaymentStatus.FAILED: WebhookEvent.FAILED,
    PaymentStatus.CANCELLED: WebhookEvent.CANCELLED,
    PaymentStatus.EXPIRED: WebhookEvent.EXPIRED,
}

_EVENT_STATUSES = {event: status for status, event in _STATUS_EVENTS.items()}


@dataclass
class WebhookNotification:
    notification_id: str
    event: WebhookEvent
    payment_id: str
    timestamp: datetime
    data: dict  # full Payment snapshot
    signature: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.notification_id,
            "event": self.event.value,
            "paymentId": self.payment_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
