"""
HTTP 402 payment rails: payment store and state machine, 402 responder,
retrying async client with status polling, and webhook signatures.
"""

__version__ = "0.1.0"

from .config import ClientConfig, ServerConfig, load_client_config, load_server_config
from .errors import (
    CancelledError,
    ConfigurationError,
    HttpError,
    InvalidOperationError,
    NetworkError,
    NotFoundError,
    PaymentTerminatedError,
    PollingTimeoutError,
    ValidationError,
    X402Error,
)
from .models import (
    Payment,
    PaymentChallenge,
    PaymentRequest,
    PaymentStatus,
    ResourceResponse,
    WebhookEvent,
    WebhookNotification,
)
from .store import InMemoryPaymentStore, PaymentStore
from .server import PaymentServer, PaymentService, ResourcePrice
from .client import PaymentClient, RequestExecutor, RetryPolicy
from .webhooks import WebhookDispatcher, WebhookSigner, compute_signature, verify_signature

__all__ = (
    "__version__",
    "CancelledError",
    "ClientConfig",
    "ConfigurationError",
    "HttpError",
    "InMemoryPaymentStore",
    "InvalidOperationError",
    "NetworkError",
    "NotFoundError",
    "Payment",
    "PaymentChallenge",
    "PaymentClient",
    "PaymentRequest",
    "PaymentServer",
    "PaymentService",
    "PaymentStatus",
    "PaymentStore",
    "PaymentTerminatedError",
    "PollingTimeoutError",
    "RequestExecutor",
    "ResourcePrice",
    "ResourceResponse",
    "RetryPolicy",
    "ServerConfig",
    "ValidationError",
    "WebhookDispatcher",
    "WebhookEvent",
    "WebhookNotification",
    "WebhookSigner",
    "X402Error",
    "compute_signature",
    "load_client_config",
    "load_server_config",
    "verify_signature",
)
