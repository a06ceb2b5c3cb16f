import random

from x402_rails.errors import HttpError, NetworkError


class RetryPolicy:
    """Retry decisions and exponential backoff for service calls."""

    DEFAULT_MAX_RETRIES = 3
    DEFAULT_BASE_DELAY = 1.0

    # Status codes that are definitive answers and should NOT trigger retries
    NO_RETRY_CODES = {400, 401, 403, 404, 409, 422}

    def __init__(
        self,
        max_retries: int | None = None,
        base_delay: float | None = None,
        jitter: float = 0.0,
        rng: random.Random | None = None,
    ):
        self.max_retries = max_retries if max_retries is not None else self.DEFAULT_MAX_RETRIES
        self.base_delay = base_delay if base_delay is not None else self.DEFAULT_BASE_DELAY
        self.jitter = jitter
        self._rng = rng or random.Random()

    def should_retry(self, error: Exception) -> bool:
        """Network failures and timeouts are retried, as are HTTP errors
        outside NO_RETRY_CODES. Anything else is not.
        """
        if isinstance(error, NetworkError):
            return True
        if isinstance(error, HttpError):
            return error.status_code not in self.NO_RETRY_CODES
        return False

    def next_delay(self, retry: int) -> float:
        """Delay in seconds before retry number ``retry`` (1-indexed): 1, 2, 4, ..."""
        delay = self.base_delay * (2 ** (retry - 1))
        if self.jitter > 0:
            delay += self._rng.uniform(0, self.jitter)
        return delay

    def has_attempts_remaining(self, retries_done: int) -> bool:
        return retries_done < self.max_retries
