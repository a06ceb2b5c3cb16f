from dataclasses import dataclass

from x402_rails.models.payment import Payment
from x402_rails.protocol import (
    ACCEPTED_METHODS,
    CHALLENGE_HEADER,
    X402_VERSION,
    format_challenge_header,
)


@dataclass(frozen=True)
class ResourcePrice:
    amount: int = 100
    currency: str = "USD"
    description: str = "Access to protected resource"


def challenge_body(payment: Payment) -> dict:
    """Structured 402 body describing the payment the caller must complete."""
    return {
        "error": "payment_required",
        "x402Version": X402_VERSION,
        "payment": {
            "id": payment.id,
            "amount": payment.amount,
            "currency": payment.currency,
            "paymentUrl": payment.payment_url,
            "acceptedMethods": list(ACCEPTED_METHODS),
            "expiresAt": payment.expires_at.isoformat(),
        },
    }


def challenge_headers(payment: Payment) -> dict[str, str]:
    return {CHALLENGE_HEADER: format_challenge_header(payment.id)}
