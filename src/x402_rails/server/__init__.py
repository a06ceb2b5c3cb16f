from .responder import ResourcePrice, challenge_body, challenge_headers
from .service import PaymentService
from .app import PaymentServer

__all__ = [
    "ResourcePrice",
    "challenge_body",
    "challenge_headers",
    "PaymentService",
    "PaymentServer",
]
