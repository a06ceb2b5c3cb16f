from asyncio import CancelledError


class X402Error(Exception):
    """Base class for payment lifecycle errors."""


class ValidationError(X402Error):
    """Malformed payment request. Never retried."""


class NotFoundError(X402Error):
    """No payment exists for the given id."""

    def __init__(self, payment_id: str, message: str | None = None):
        super().__init__(message or f"Payment {payment_id} not found")
        self.payment_id = payment_id


class InvalidOperationError(X402Error):
    """Requested transition is not allowed from the current status."""


class ConfigurationError(X402Error):
    """Required configuration (api key, webhook secret) is missing or invalid."""


class NetworkError(X402Error):
    """Transport failure: connection refused, reset, or per-attempt timeout."""

    def __init__(self, message: str, reason: str = "connection_error"):
        super().__init__(message)
        self.reason = reason


class HttpError(X402Error):
    """The service answered with a non-2xx status."""

    def __init__(self, status_code: int, body: dict | str | None = None):
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body

    @property
    def error_code(self) -> str | None:
        if isinstance(self.body, dict):
            return self.body.get("error")
        return None


class PaymentTerminatedError(X402Error):
    """Polling observed a terminal status other than completed."""

    def __init__(self, status, payment=None):
        super().__init__(f"Payment ended with status {status.value}")
        self.status = status
        self.payment = payment


class PollingTimeoutError(X402Error):
    """Polling hit its attempt ceiling before the payment settled."""

    def __init__(self, payment_id: str, attempts: int):
        super().__init__(
            f"Payment {payment_id} did not settle after {attempts} status checks"
        )
        self.payment_id = payment_id
        self.attempts = attempts


__all__ = [
    "CancelledError",
    "ConfigurationError",
    "HttpError",
    "InvalidOperationError",
    "NetworkError",
    "NotFoundError",
    "PaymentTerminatedError",
    "PollingTimeoutError",
    "ValidationError",
    "X402Error",
]
