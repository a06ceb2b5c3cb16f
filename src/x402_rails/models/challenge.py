from dataclasses import dataclass, field
from typing import Any


@dataclass
class PaymentChallenge:
    """Parsed body of a 402 Payment Required response."""

    payment_id: str
    amount: int
    currency: str
    payment_url: str
    accepted_methods: list[str] = field(default_factory=list)
    realm: str = "x402"
    expires_at: str | None = None

    @classmethod
    def from_response(cls, body: dict, realm: str = "x402") -> "PaymentChallenge":
        payment = body["payment"]
        return cls(
            payment_id=payment["id"],
            amount=payment["amount"],
            currency=payment["currency"],
            payment_url=payment["paymentUrl"],
            accepted_methods=list(payment.get("acceptedMethods", [])),
            realm=realm,
            expires_at=payment.get("expiresAt"),
        )


@dataclass
class ResourceResponse:
    status_code: int
    payment_required: bool
    payload: Any = None
    challenge: PaymentChallenge | None = None
