"""
Command-line entry point for running the payment server.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from x402_rails.config import ServerConfig, load_server_config
from x402_rails.errors import ConfigurationError
from x402_rails.log import configure_logging, get_logger
from x402_rails.server.app import PaymentServer
from x402_rails.server.responder import ResourcePrice
from x402_rails.server.service import PaymentService
from x402_rails.store.memory import InMemoryPaymentStore
from x402_rails.webhooks.dispatcher import WebhookDispatcher
from x402_rails.webhooks.signer import WebhookSigner

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-rails",
        description="HTTP 402 payment rails server",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the payment API server")
    serve.add_argument("--host", default=None, help="Bind address (default: X402_HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: X402_PORT or 8787)")
    serve.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    return parser


def build_server(config: ServerConfig) -> PaymentServer:
    store = InMemoryPaymentStore(payment_base_url=config.payment_base_url)

    dispatcher = None
    if config.webhook_urls:
        if not config.webhook_secret:
            raise ConfigurationError("X402_WEBHOOK_SECRET is required when X402_WEBHOOK_URLS is set")
        dispatcher = WebhookDispatcher(WebhookSigner(config.webhook_secret), config.webhook_urls)

    service = PaymentService(
        store,
        dispatcher=dispatcher,
        price=ResourcePrice(amount=config.price_amount, currency=config.price_currency),
    )
    return PaymentServer(
        service,
        host=config.host,
        port=config.port,
        webhook_secret=config.webhook_secret,
    )


def run_cli(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_server_config()
        server = build_server(ServerConfig(
            host=args.host or config.host,
            port=args.port if args.port is not None else config.port,
            webhook_secret=config.webhook_secret,
            webhook_urls=config.webhook_urls,
            payment_base_url=config.payment_base_url,
            price_amount=config.price_amount,
            price_currency=config.price_currency,
        ))
    except ConfigurationError as exc:
        logger.error("invalid_configuration", error=str(exc))
        return 1

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("server_stopped")
    return 0


def main() -> None:
    raise SystemExit(run_cli())
