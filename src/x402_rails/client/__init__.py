from .retry import RetryPolicy
from .executor import RequestExecutor
from .controller import PaymentClient

__all__ = [
    "RetryPolicy",
    "RequestExecutor",
    "PaymentClient",
]
