from .base import ALLOWED_TRANSITIONS, PaymentStore, can_transition
from .memory import InMemoryPaymentStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "PaymentStore",
    "can_transition",
    "InMemoryPaymentStore",
]
