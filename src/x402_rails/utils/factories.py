import uuid
from datetime import datetime, timezone

from x402_rails.models.payment import PAYMENT_TTL, Payment, PaymentRequest, PaymentStatus
from x402_rails.models.webhook import WebhookEvent, WebhookNotification


class PaymentFactory:
    """Factory for creating Payment instances with sensible defaults."""

    @staticmethod
    def create(**overrides) -> Payment:
        payment_id = overrides.pop("id", f"pay_{uuid.uuid4().hex}")
        created_at = overrides.pop("created_at", datetime.now(timezone.utc))
        defaults = {
            "id": payment_id,
            "status": PaymentStatus.AWAITING_PAYMENT,
            "amount": 1000,
            "currency": "USD",
            "payment_url": f"https://pay.x402.dev/checkout/{payment_id}",
            "created_at": created_at,
            "updated_at": created_at,
            "expires_at": created_at + PAYMENT_TTL,
            "description": None,
            "metadata": {},
        }
        defaults.update(overrides)
        return Payment(**defaults)

    @staticmethod
    def request(**overrides) -> PaymentRequest:
        defaults = {"amount": 1000, "currency": "USD"}
        defaults.update(overrides)
        return PaymentRequest(**defaults)


class NotificationFactory:
    """Factory for creating WebhookNotification instances."""

    @staticmethod
    def create(event: WebhookEvent = WebhookEvent.COMPLETED, **overrides) -> WebhookNotification:
        payment = overrides.pop("payment", None)
        if payment is None:
            payment = PaymentFactory.create(status=event.status)

        defaults = {
            "notification_id": f"evt_{uuid.uuid4().hex[:16]}",
            "event": event,
            "payment_id": payment.id,
            "timestamp": datetime.now(timezone.utc),
            "data": payment.to_dict(),
            "signature": "",
        }
        defaults.update(overrides)
        return WebhookNotification(**defaults)
