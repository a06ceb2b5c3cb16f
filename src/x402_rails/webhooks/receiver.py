import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Self

from x402_rails.webhooks.signer import SIGNATURE_HEADER, verify_signature


class _NotificationHandler(BaseHTTPRequestHandler):
    """Receives payment notifications and checks their signatures."""

    def _reply(self, code: int, body: dict) -> None:
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(body).encode())

    def do_POST(self):
        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            self._reply(400, {"error": "invalid Content-Length"})
            return
        body = self.rfile.read(max(content_length, 0))

        state = self.server.state  # type: ignore[attr-defined]

        # Verify over the raw bytes before trusting anything in them
        if state["secret"]:
            sig = self.headers.get(SIGNATURE_HEADER, "")
            if not sig:
                self._reply(401, {"error": "missing signature"})
                return
            if not verify_signature(body, sig, state["secret"]):
                with state["lock"]:
                    state["rejected"] += 1
                self._reply(401, {"error": "invalid signature"})
                return

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, ValueError):
            self._reply(400, {"error": "invalid JSON"})
            return

        event_id = self.headers.get("X-Event-ID", "")
        with state["lock"]:
            if event_id and event_id in state["seen"]:
                self._reply(200, {"status": "already_processed"})
                return
            state["received"].append({
                "event_id": event_id,
                "payload": payload,
                "headers": dict(self.headers),
            })
            if event_id:
                state["seen"].add(event_id)

        code = state["response_code"]
        self._reply(code, {"status": "ok"} if 200 <= code < 300 else {"error": "rejected"})

    def log_message(self, format, *args):
        """Suppress default request logging."""
        pass


class WebhookReceiver:
    """Minimal integrator endpoint for payment notifications.

    Signatures are checked when a secret is set. Accepted notifications are
    kept for inspection, once per event id.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0, secret: str | None = None):
        self._host = host
        self._port = port
        self._state = {
            "secret": secret,
            "response_code": 200,
            "received": [],
            "seen": set(),
            "rejected": 0,
            "lock": threading.Lock(),
        }
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def set_response_code(self, code: int) -> Self:
        self._state["response_code"] = code
        return self

    def start(self) -> None:
        self._server = ThreadingHTTPServer((self._host, self._port), _NotificationHandler)
        self._server.state = self._state  # type: ignore[attr-defined]
        self._port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

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
        return f"http://{self._host}:{self._port}/webhook"

    @property
    def port(self) -> int:
        return self._port

    def get_received(self) -> list[dict]:
        with self._state["lock"]:
            return list(self._state["received"])

    def get_rejected_count(self) -> int:
        with self._state["lock"]:
            return self._state["rejected"]
