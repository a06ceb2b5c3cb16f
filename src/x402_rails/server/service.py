import uuid
from datetime import datetime, timezone
from typing import Any

from x402_rails.errors import NotFoundError
from x402_rails.log import get_logger
from x402_rails.models.payment import Payment, PaymentRequest, PaymentStatus
from x402_rails.models.webhook import WebhookEvent, WebhookNotification
from x402_rails.server.responder import (
    ResourcePrice,
    challenge_body,
    challenge_headers,
)
from x402_rails.store.base import PaymentStore
from x402_rails.webhooks.dispatcher import WebhookDispatcher

logger = get_logger(__name__)


class PaymentService:
    """Server-side payment operations and the 402 responder.

    The service subscribes to the store, so every status change the store
    reports (lazy expiry included) becomes one WebhookNotification handed to
    the dispatcher, when one is configured.
    """

    def __init__(
        self,
        store: PaymentStore,
        dispatcher: WebhookDispatcher | None = None,
        price: ResourcePrice | None = None,
        protected_payload: Any = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.price = price or ResourcePrice()
        self.protected_payload = protected_payload or {
            "message": "Access granted",
            "resource": "protected",
        }
        store.subscribe(self._notify)

    def create(self, request: PaymentRequest) -> Payment:
        return self.store.create(request)

    def get(self, payment_id: str) -> Payment:
        return self.store.get(payment_id)

    def cancel(self, payment_id: str) -> Payment:
        return self.store.cancel(payment_id)

    def transition(self, payment_id: str, status: PaymentStatus) -> Payment:
        return self.store.transition(payment_id, status)

    def list(
        self,
        status: PaymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Payment]:
        return self.store.list(status=status, limit=limit, offset=offset)

    def has_valid_proof(self, proof: str | None) -> bool:
        if not proof:
            return False
        try:
            payment = self.store.get(proof.strip())
        except NotFoundError:
            return False
        return payment.status is PaymentStatus.COMPLETED

    def respond_to_protected(self, proof: str | None) -> tuple[int, Any, dict[str, str]]:
        """Return ``(status, body, headers)`` for a request to the protected resource.

        Requests without proof of a completed payment each get a new payment;
        challenges are not deduplicated per caller.
        """
        if self.has_valid_proof(proof):
            return 200, self.protected_payload, {}

        payment = self.create(PaymentRequest(
            amount=self.price.amount,
            currency=self.price.currency,
            description=self.price.description,
        ))
        logger.info("payment_required", payment_id=payment.id, amount=payment.amount)
        return 402, challenge_body(payment), challenge_headers(payment)

    def _notify(self, payment: Payment, previous: PaymentStatus | None) -> None:
        if self.dispatcher is None:
            return
        logger.debug(
            "payment_status_changed",
            payment_id=payment.id,
            previous=previous.value if previous else None,
            status=payment.status.value,
        )
        notification = WebhookNotification(
            notification_id=f"evt_{uuid.uuid4().hex[:16]}",
            event=WebhookEvent.for_status(payment.status),
            payment_id=payment.id,
            timestamp=datetime.now(timezone.utc),
            data=payment.to_dict(),
        )
        self.dispatcher.dispatch(notification)
