from abc import ABC, abstractmethod
from typing import Callable

from x402_rails.models.payment import Payment, PaymentRequest, PaymentStatus


# Edges of the payment state machine. Terminal statuses have no entry.
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.AWAITING_PAYMENT}),
    PaymentStatus.AWAITING_PAYMENT: frozenset({
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    }),
    PaymentStatus.PROCESSING: frozenset({
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    }),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


ChangeListener = Callable[[Payment, PaymentStatus | None], None]


class PaymentStore(ABC):
    """Owns canonical payment records and their status transitions.

    Implementations must serialize mutations per payment id and hand out
    copies, so readers never see a partially updated record. Every status
    change, expiry included, is reported once to the subscribed listeners
    as `(payment, previous_status)`; `previous_status` is None on create.
    """

    def __init__(self):
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _emit(self, changes: list[tuple[Payment, PaymentStatus | None]]) -> None:
        for payment, previous in changes:
            for listener in self._listeners:
                listener(payment, previous)

    @abstractmethod
    def create(self, request: PaymentRequest) -> Payment: ...

    @abstractmethod
    def get(self, payment_id: str) -> Payment: ...

    @abstractmethod
    def cancel(self, payment_id: str) -> Payment: ...

    @abstractmethod
    def transition(self, payment_id: str, status: PaymentStatus) -> Payment: ...

    @abstractmethod
    def list(
        self,
        status: PaymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Payment]: ...
