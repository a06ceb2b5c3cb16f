import asyncio

import httpx

from x402_rails.client.executor import RequestExecutor, Sleep
from x402_rails.config import ClientConfig
from x402_rails.errors import (
    HttpError,
    InvalidOperationError,
    NotFoundError,
    PaymentTerminatedError,
    PollingTimeoutError,
    ValidationError,
)
from x402_rails.log import get_logger
from x402_rails.models.challenge import PaymentChallenge, ResourceResponse
from x402_rails.models.payment import Payment, PaymentRequest, PaymentStatus
from x402_rails.protocol import CHALLENGE_HEADER, PROOF_HEADER, REALM, parse_challenge_header
from x402_rails.webhooks.signer import verify_signature

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_POLL_ATTEMPTS = 60


def _json_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError as e:
        raise HttpError(response.status_code, response.text) from e


def _translate(error: HttpError, payment_id: str | None = None) -> Exception:
    """Map a definitive service answer back onto the domain error it encodes."""
    message = error.body.get("message", str(error)) if isinstance(error.body, dict) else str(error)
    if error.status_code == 404:
        return NotFoundError(payment_id or "", message)
    if error.status_code == 400 and error.error_code == "invalid_operation":
        return InvalidOperationError(message)
    if error.status_code == 400 and error.error_code == "validation_error":
        return ValidationError(message)
    return error


class PaymentClient:
    """Client side of the payment lifecycle.

    Creates payments through the service, then polls their status until they
    settle. Holds only copies of payments; all mutations go through the API.
    """

    def __init__(
        self,
        config: ClientConfig,
        executor: RequestExecutor | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.executor = executor or RequestExecutor(config)
        self._sleep = sleep

    async def __aenter__(self) -> "PaymentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.executor.aclose()

    async def _call(self, method: str, path: str, payment_id: str | None = None, **kwargs):
        try:
            response = await self.executor.execute(method, path, **kwargs)
        except HttpError as e:
            translated = _translate(e, payment_id)
            if translated is e:
                raise
            raise translated from e
        return _json_body(response)

    async def initiate_payment(self, request: PaymentRequest) -> Payment:
        data = await self._call("POST", "/api/payments", body=request.to_dict())
        payment = Payment.from_dict(data)
        logger.info("payment_initiated", payment_id=payment.id, payment_url=payment.payment_url)
        return payment

    async def check_payment_status(self, payment_id: str) -> Payment:
        return Payment.from_dict(await self._call("GET", f"/api/payments/{payment_id}", payment_id))

    async def cancel_payment(self, payment_id: str) -> Payment:
        return Payment.from_dict(await self._call("POST", f"/api/payments/{payment_id}/cancel", payment_id))

    async def list_payments(
        self,
        status: PaymentStatus | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Payment]:
        params = {}
        if status is not None:
            params["status"] = status.value if isinstance(status, PaymentStatus) else status
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        data = await self._call("GET", "/api/payments", params=params or None)
        return [Payment.from_dict(p) for p in data["payments"]]

    async def poll_until_settled(
        self,
        payment_id: str,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_POLL_ATTEMPTS,
    ) -> Payment:
        """Poll until the payment completes.

        Raises PaymentTerminatedError for failed, cancelled or expired payments
        and PollingTimeoutError once ``max_attempts`` checks have not settled it.
        Cancelling the awaiting task stops polling with asyncio.CancelledError;
        the remote payment is left untouched.
        """
        for attempt in range(1, max_attempts + 1):
            payment = await self.check_payment_status(payment_id)
            logger.debug("payment_polled", payment_id=payment_id, attempt=attempt, status=payment.status.value)

            if payment.status is PaymentStatus.COMPLETED:
                logger.info("payment_settled", payment_id=payment_id, attempts=attempt)
                return payment
            if payment.status.is_terminal:
                raise PaymentTerminatedError(payment.status, payment)

            if attempt < max_attempts:
                await self._sleep(interval)

        raise PollingTimeoutError(payment_id, max_attempts)

    async def access_resource(self, url: str, proof: str | None = None) -> ResourceResponse:
        """GET a protected resource, returning the parsed 402 challenge when payment is required."""
        headers = {PROOF_HEADER: proof} if proof else None
        response = await self.executor.execute("GET", url, allow_statuses=(402,), headers=headers)
        body = _json_body(response)

        if response.status_code != 402:
            return ResourceResponse(status_code=response.status_code, payment_required=False, payload=body)

        params = parse_challenge_header(response.headers.get(CHALLENGE_HEADER))
        challenge = PaymentChallenge.from_response(body, realm=params.get("realm", REALM))
        return ResourceResponse(
            status_code=402,
            payment_required=True,
            payload=body,
            challenge=challenge,
        )

    def verify_webhook(self, payload: bytes | str, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.config.webhook_secret)
