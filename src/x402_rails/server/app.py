import json
import re
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Self
from urllib.parse import parse_qs, urlsplit

from x402_rails import __version__
from x402_rails.errors import InvalidOperationError, NotFoundError, ValidationError
from x402_rails.log import get_logger
from x402_rails.models.payment import PaymentRequest, PaymentStatus
from x402_rails.models.webhook import WebhookEvent
from x402_rails.protocol import PROOF_HEADER
from x402_rails.server.service import PaymentService
from x402_rails.webhooks.signer import SIGNATURE_HEADER, verify_signature

logger = get_logger(__name__)

_PAYMENT_PATH = re.compile(r"^/api/payments/(?P<id>[^/]+)$")
_CANCEL_PATH = re.compile(r"^/api/payments/(?P<id>[^/]+)/cancel$")

DEFAULT_LIST_LIMIT = 20


class _PaymentHandler(BaseHTTPRequestHandler):
    """Routes the payment API onto the PaymentService."""

    server_version = "x402-rails"

    @property
    def service(self) -> PaymentService:
        return self.server.service  # type: ignore[attr-defined]

    def _send_json(self, code: int, body, headers: dict[str, str] | None = None) -> None:
        data = json.dumps(body).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(data)

    def _error(self, code: int, error: str, message: str) -> None:
        self._send_json(code, {"error": error, "message": message})

    def _read_body(self) -> bytes:
        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            raise ValidationError("Content-Length must be an integer")
        if content_length < 0:
            raise ValidationError("Content-Length must not be negative")
        return self.rfile.read(content_length)

    def do_GET(self):
        url = urlsplit(self.path)
        path = url.path.rstrip("/") or "/"

        try:
            if path == "/":
                self._send_json(200, {"message": "x402 Payment Rails", "version": __version__})
            elif path == "/api/health":
                self._send_json(200, {
                    "status": "healthy",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })
            elif path == "/protected":
                code, body, headers = self.service.respond_to_protected(self.headers.get(PROOF_HEADER))
                self._send_json(code, body, headers)
            elif path == "/api/payments":
                self._list_payments(parse_qs(url.query))
            elif match := _PAYMENT_PATH.match(path):
                self._send_json(200, self.service.get(match["id"]).to_dict())
            else:
                self._error(404, "not_found", f"No route for GET {path}")
        except NotFoundError as e:
            self._error(404, "not_found", str(e))
        except ValidationError as e:
            self._error(400, "validation_error", str(e))

    def do_POST(self):
        path = urlsplit(self.path).path.rstrip("/")

        try:
            if path == "/api/payments":
                self._create_payment()
            elif path == "/api/webhooks/payment":
                self._receive_webhook()
            elif match := _CANCEL_PATH.match(path):
                self._send_json(200, self.service.cancel(match["id"]).to_dict())
            else:
                self._error(404, "not_found", f"No route for POST {path}")
        except NotFoundError as e:
            self._error(404, "not_found", str(e))
        except ValidationError as e:
            self._error(400, "validation_error", str(e))
        except InvalidOperationError as e:
            self._error(400, "invalid_operation", str(e))

    def _create_payment(self) -> None:
        try:
            body = json.loads(self._read_body())
        except (json.JSONDecodeError, ValueError):
            raise ValidationError("invalid JSON")
        payment = self.service.create(PaymentRequest.from_dict(body))
        self._send_json(201, payment.to_dict())

    def _list_payments(self, query: dict[str, list[str]]) -> None:
        def first(name: str) -> str | None:
            values = query.get(name)
            return values[0] if values else None

        status = None
        if raw_status := first("status"):
            try:
                status = PaymentStatus(raw_status)
            except ValueError:
                raise ValidationError(f"unknown status {raw_status!r}")
        try:
            limit = int(first("limit") or DEFAULT_LIST_LIMIT)
            offset = int(first("offset") or 0)
        except ValueError:
            raise ValidationError("limit and offset must be integers")

        payments = self.service.list(status=status, limit=limit, offset=offset)
        self._send_json(200, {
            "payments": [p.to_dict() for p in payments],
            "limit": limit,
            "offset": offset,
        })

    def _receive_webhook(self) -> None:
        body = self._read_body()

        # Unsigned processor notifications never move a payment.
        secret = self.server.webhook_secret  # type: ignore[attr-defined]
        if not secret:
            self._error(403, "forbidden", "processor notifications require a webhook secret")
            return
        signature = self.headers.get(SIGNATURE_HEADER, "")
        if not signature:
            self._error(401, "unauthorized", "missing signature")
            return
        if not verify_signature(body, signature, secret):
            self._error(401, "unauthorized", "invalid signature")
            return

        try:
            payload = json.loads(body)
            event = WebhookEvent(payload["event"])
            payment_id = payload["paymentId"]
        except (json.JSONDecodeError, ValueError, KeyError, TypeError):
            raise ValidationError("webhook body must carry a known event and paymentId")

        if event is WebhookEvent.CREATED:
            payment = self.service.get(payment_id)
        else:
            try:
                payment = self.service.transition(payment_id, event.status)
            except InvalidOperationError as e:
                self._error(409, "invalid_operation", str(e))
                return

        logger.info("webhook_received", event_type=event.value, payment_id=payment_id, status=payment.status.value)
        self._send_json(200, {"received": True, "status": payment.status.value})

    def log_message(self, format, *args):
        """Route access logs through structlog instead of stderr."""
        logger.debug("http_request", client=self.address_string(), line=format % args)


class PaymentServer:
    """Threaded HTTP server exposing the payment API and the 402 protected route."""

    def __init__(
        self,
        service: PaymentService,
        host: str = "127.0.0.1",
        port: int = 0,
        webhook_secret: str | None = None,
    ):
        self.service = service
        self._host = host
        self._port = port
        self._webhook_secret = webhook_secret
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def enable_signature_verification(self, secret: str) -> Self:
        self._webhook_secret = secret
        if self._server is not None:
            self._server.webhook_secret = secret  # type: ignore[attr-defined]
        return self

    def start(self) -> None:
        self._server = ThreadingHTTPServer((self._host, self._port), _PaymentHandler)
        self._server.service = self.service  # type: ignore[attr-defined]
        self._server.webhook_secret = self._webhook_secret  # type: ignore[attr-defined]
        # Resolve the real port when bound to port 0
        self._port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("server_started", host=self._host, port=self._port)

    def serve_forever(self) -> None:
        """Start and block the calling thread until interrupted."""
        self.start()
        try:
            self._thread.join()
        finally:
            self.stop()

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}"

    @property
    def port(self) -> int:
        return self._port
