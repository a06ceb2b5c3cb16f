from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from x402_rails.errors import ValidationError


PAYMENT_TTL = timedelta(hours=1)


class PaymentStatus(Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
    PaymentStatus.EXPIRED,
})


@dataclass
class PaymentRequest:
    amount: Any
    currency: Any
    description: str | None = None
    metadata: dict | None = None

    @classmethod
    def from_dict(cls, body: Any) -> "PaymentRequest":
        if not isinstance(body, dict):
            raise ValidationError("request body must be a JSON object")
        return cls(
            amount=body.get("amount"),
            currency=body.get("currency"),
            description=body.get("description"),
            metadata=body.get("metadata"),
        )

    def to_dict(self) -> dict:
        data = {"amount": self.amount, "currency": self.currency}
        if self.description is not None:
            data["description"] = self.description
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass
class Payment:
    id: str
    status: PaymentStatus
    amount: int
    currency: str
    payment_url: str
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    description: str | None = None
    metadata: dict = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict:
        """Wire representation used by the HTTP API and webhook snapshots."""
        return {
            "id": self.id,
            "status": self.status.value,
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "metadata": dict(self.metadata),
            "paymentUrl": self.payment_url,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        return cls(
            id=data["id"],
            status=PaymentStatus(data["status"]),
            amount=data["amount"],
            currency=data["currency"],
            payment_url=data.get("paymentUrl", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            expires_at=datetime.fromisoformat(data["expiresAt"]),
            description=data.get("description"),
            metadata=data.get("metadata") or {},
        )
