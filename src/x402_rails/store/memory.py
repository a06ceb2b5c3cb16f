import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

from x402_rails.errors import InvalidOperationError, NotFoundError, ValidationError
from x402_rails.log import get_logger
from x402_rails.models.payment import (
    PAYMENT_TTL,
    Payment,
    PaymentRequest,
    PaymentStatus,
)
from x402_rails.store.base import PaymentStore, can_transition

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_payment_id() -> str:
    return f"pay_{uuid.uuid4().hex}"


class InMemoryPaymentStore(PaymentStore):
    """Process-local store: a dict of records guarded by one lock per payment id."""

    def __init__(
        self,
        payment_base_url: str = "https://pay.x402.dev/checkout",
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_payment_id,
    ):
        super().__init__()
        self.payment_base_url = payment_base_url.rstrip("/")
        self._clock = clock
        self._id_factory = id_factory
        self._records: dict[str, Payment] = {}
        self._order: dict[str, int] = {}  # insertion sequence, breaks created_at ties
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, payment_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(payment_id)
            if lock is None:
                raise NotFoundError(payment_id)
            return lock

    def _expire_if_due(self, payment: Payment, now: datetime, changes: list) -> None:
        # Caller holds the payment's lock.
        if payment.is_expired(now) and not payment.status.is_terminal:
            logger.info("payment_expired", payment_id=payment.id, previous=payment.status.value)
            self._set_status(payment, PaymentStatus.EXPIRED, now, changes)

    def _set_status(self, payment: Payment, status: PaymentStatus, now: datetime, changes: list) -> None:
        previous = payment.status
        payment.status = status
        payment.updated_at = now
        changes.append((copy.deepcopy(payment), previous))

    def create(self, request: PaymentRequest) -> Payment:
        amount = request.amount
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer in the smallest currency unit")
        if not isinstance(request.currency, str) or not request.currency.strip():
            raise ValidationError("currency is required")
        if request.metadata is not None and not isinstance(request.metadata, dict):
            raise ValidationError("metadata must be an object")

        now = self._clock()
        payment_id = self._id_factory()
        payment = Payment(
            id=payment_id,
            status=PaymentStatus.AWAITING_PAYMENT,
            amount=amount,
            currency=request.currency,
            payment_url=f"{self.payment_base_url}/{payment_id}",
            created_at=now,
            updated_at=now,
            expires_at=now + PAYMENT_TTL,
            description=request.description,
            metadata=copy.deepcopy(request.metadata) if request.metadata else {},
        )
        with self._registry_lock:
            self._records[payment_id] = payment
            self._order[payment_id] = len(self._order)
            self._locks[payment_id] = threading.Lock()
            snapshot = copy.deepcopy(payment)

        logger.info("payment_created", payment_id=payment_id, amount=amount, currency=request.currency)
        self._emit([(copy.deepcopy(snapshot), None)])
        return snapshot

    def get(self, payment_id: str) -> Payment:
        changes = []
        with self._lock_for(payment_id):
            payment = self._records[payment_id]
            self._expire_if_due(payment, self._clock(), changes)
            snapshot = copy.deepcopy(payment)
        self._emit(changes)
        return snapshot

    def cancel(self, payment_id: str) -> Payment:
        changes = []
        try:
            with self._lock_for(payment_id):
                payment = self._records[payment_id]
                now = self._clock()
                self._expire_if_due(payment, now, changes)

                if payment.status is PaymentStatus.COMPLETED:
                    raise InvalidOperationError(f"Payment {payment_id} is completed and cannot be cancelled")
                # Cancelling a payment that already ended leaves it as it is.
                if not payment.status.is_terminal:
                    self._set_status(payment, PaymentStatus.CANCELLED, now, changes)
                    logger.info("payment_cancelled", payment_id=payment_id)
                snapshot = copy.deepcopy(payment)
        finally:
            self._emit(changes)
        return snapshot

    def transition(self, payment_id: str, status: PaymentStatus) -> Payment:
        changes = []
        try:
            with self._lock_for(payment_id):
                payment = self._records[payment_id]
                now = self._clock()
                self._expire_if_due(payment, now, changes)

                if payment.status is not status:
                    if not can_transition(payment.status, status):
                        raise InvalidOperationError(
                            f"Payment {payment_id} cannot move from {payment.status.value} to {status.value}"
                        )
                    logger.info(
                        "payment_transition",
                        payment_id=payment_id,
                        previous=payment.status.value,
                        status=status.value,
                    )
                    self._set_status(payment, status, now, changes)
                snapshot = copy.deepcopy(payment)
        finally:
            self._emit(changes)
        return snapshot

    def list(
        self,
        status: PaymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Payment]:
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must not be negative")

        with self._registry_lock:
            ids = list(self._records)

        now = self._clock()
        changes = []
        snapshots = []
        for payment_id in ids:
            with self._lock_for(payment_id):
                payment = self._records[payment_id]
                self._expire_if_due(payment, now, changes)
                snapshots.append(copy.deepcopy(payment))
        self._emit(changes)

        if status is not None:
            snapshots = [p for p in snapshots if p.status is status]
        snapshots.sort(key=lambda p: (p.created_at, self._order[p.id]), reverse=True)
        return snapshots[offset:offset + limit]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._records)
