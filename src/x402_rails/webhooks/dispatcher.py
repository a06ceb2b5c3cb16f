import threading
import time
import uuid
from datetime import datetime, timezone

import requests

from x402_rails.log import get_logger
from x402_rails.models.delivery import DeliveryAttempt
from x402_rails.models.webhook import WebhookNotification
from x402_rails.webhooks.signer import SIGNATURE_HEADER, WebhookSigner

logger = get_logger(__name__)


class WebhookDispatcher:
    """Best-effort delivery of signed payment notifications.

    Each subscriber URL gets one POST per notification; a failed delivery is
    logged and not retried. Every attempt is kept and can be looked up by
    payment id.
    """

    def __init__(
        self,
        signer: WebhookSigner,
        urls: list[str] | tuple[str, ...] = (),
        timeout_seconds: float = 5,
        session: requests.Session | None = None,
    ):
        self.signer = signer
        self.urls = list(urls)
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._attempts: list[DeliveryAttempt] = []
        self._attempts_lock = threading.Lock()

    def dispatch(self, notification: WebhookNotification) -> list[DeliveryAttempt]:
        body, signature = self.signer.sign_notification(notification)
        return [self._deliver(notification, body, signature, url) for url in self.urls]

    def attempts(self, payment_id: str | None = None) -> list[DeliveryAttempt]:
        with self._attempts_lock:
            if payment_id is None:
                return list(self._attempts)
            return [a for a in self._attempts if a.payment_id == payment_id]

    def failed_attempts(self, payment_id: str | None = None) -> list[DeliveryAttempt]:
        return [a for a in self.attempts(payment_id) if not a.succeeded]

    def _deliver(
        self,
        notification: WebhookNotification,
        body: bytes,
        signature: str,
        url: str,
    ) -> DeliveryAttempt:
        event_type = notification.event.value
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: signature,
            "X-Event-ID": notification.notification_id,
            "X-Event-Type": event_type,
        }

        start = time.monotonic()
        status_code = None
        error = None

        try:
            resp = self.session.post(url, data=body, headers=headers, timeout=self.timeout_seconds)
            status_code = resp.status_code
        except requests.exceptions.Timeout:
            error = "timeout"
        except requests.exceptions.ConnectionError:
            error = "connection_error"
        except requests.exceptions.RequestException as e:
            error = str(e)

        attempt = DeliveryAttempt(
            attempt_id=f"att_{uuid.uuid4().hex[:16]}",
            notification_id=notification.notification_id,
            payment_id=notification.payment_id,
            event_type=event_type,
            url=url,
            status_code=status_code,
            timestamp=datetime.now(timezone.utc),
            response_time_ms=(time.monotonic() - start) * 1000,
            error=error,
        )
        with self._attempts_lock:
            self._attempts.append(attempt)

        log = logger.bind(
            notification_id=notification.notification_id,
            payment_id=notification.payment_id,
            event_type=event_type,
            url=url,
            status_code=status_code,
        )
        if attempt.succeeded:
            log.info("webhook_delivered")
        else:
            log.warning("webhook_delivery_failed", error=error)
        return attempt
