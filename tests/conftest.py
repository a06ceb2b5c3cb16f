from datetime import datetime, timedelta, timezone

import httpx
import pytest

from x402_rails.client.executor import RequestExecutor
from x402_rails.client.retry import RetryPolicy
from x402_rails.config import ClientConfig
from x402_rails.server.app import PaymentServer
from x402_rails.server.service import PaymentService
from x402_rails.store.memory import InMemoryPaymentStore
from x402_rails.utils.factories import NotificationFactory, PaymentFactory
from x402_rails.webhooks.dispatcher import WebhookDispatcher
from x402_rails.webhooks.receiver import WebhookReceiver
from x402_rails.webhooks.signer import WebhookSigner


WEBHOOK_SECRET = "test-secret-key-for-hmac"
TEST_BASE_URL = "http://testserver"


class FakeClock:
    """Deterministic UTC clock; advances only when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryPaymentStore(clock=clock)


@pytest.fixture
def service(store):
    return PaymentService(store)


@pytest.fixture
def payment_server(service):
    server = PaymentServer(service)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def signer():
    return WebhookSigner(WEBHOOK_SECRET)


@pytest.fixture
def receiver():
    server = WebhookReceiver(secret=WEBHOOK_SECRET)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def dispatcher(signer, receiver):
    return WebhookDispatcher(signer, [receiver.url], timeout_seconds=5)


@pytest.fixture
def client_config():
    return ClientConfig(api_key="test-api-key", base_url=TEST_BASE_URL, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def sleep_recorder():
    return RecordingSleep()


@pytest.fixture
def poll_sleep():
    """Separate recorder for the polling interval, distinct from retry backoff."""
    return RecordingSleep()


@pytest.fixture
def make_executor(client_config, sleep_recorder):
    """Build a RequestExecutor whose network is an httpx.MockTransport handler."""

    def _make(handler, max_retries: int = 3, timeout: float | None = None) -> RequestExecutor:
        config = ClientConfig(
            api_key=client_config.api_key,
            base_url=client_config.base_url,
            webhook_secret=client_config.webhook_secret,
            timeout=timeout or client_config.timeout,
            max_retries=max_retries,
        )
        return RequestExecutor(
            config,
            transport=httpx.MockTransport(handler),
            policy=RetryPolicy(max_retries=max_retries),
            sleep=sleep_recorder,
        )

    return _make


@pytest.fixture
def payment_factory():
    return PaymentFactory


@pytest.fixture
def notification_factory():
    return NotificationFactory
