"""
Configuration objects for the payment client and server.

Values usually come from ``X402_*`` environment variables; callers may also
construct the dataclasses directly. Both are frozen so a single instance can be
shared read-only by every operation on a client or server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from x402_rails.errors import ConfigurationError

__all__ = [
    "ClientConfig",
    "ServerConfig",
    "load_client_config",
    "load_server_config",
]

DEFAULT_BASE_URL = "https://api.x402.dev"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3

_CLIENT_ENV_KEYS = {
    "api_key": "X402_API_KEY",
    "base_url": "X402_BASE_URL",
    "webhook_secret": "X402_WEBHOOK_SECRET",
    "timeout": "X402_TIMEOUT",
    "max_retries": "X402_MAX_RETRIES",
}


@dataclass(frozen=True)
class ClientConfig:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    webhook_secret: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError("api_key must not be empty")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787
    webhook_secret: Optional[str] = None
    webhook_urls: tuple[str, ...] = field(default_factory=tuple)
    payment_base_url: str = "https://pay.x402.dev/checkout"
    price_amount: int = 100
    price_currency: str = "USD"


def _to_number(raw: str, key: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a valid {kind.__name__}") from exc


def load_client_config(
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ClientConfig:
    """
    Build a :class:`ClientConfig` from ``X402_*`` variables.

    ``environ`` defaults to :data:`os.environ`. Keyword ``overrides`` win over
    the environment; ``None`` overrides are ignored.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for name, key in _CLIENT_ENV_KEYS.items():
        raw = env.get(key)
        if raw is None or raw == "":
            continue
        if name == "timeout":
            values[name] = _to_number(raw, key, float)
        elif name == "max_retries":
            values[name] = _to_number(raw, key, int)
        else:
            values[name] = raw

    values.update({k: v for k, v in overrides.items() if v is not None})
    if "api_key" not in values:
        raise ConfigurationError("X402_API_KEY is required")
    return ClientConfig(**values)


def load_server_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    env = os.environ if environ is None else environ
    defaults = ServerConfig()
    urls = env.get("X402_WEBHOOK_URLS", "")
    return ServerConfig(
        host=env.get("X402_HOST", defaults.host),
        port=_to_number(env.get("X402_PORT", str(defaults.port)), "X402_PORT", int),
        webhook_secret=env.get("X402_WEBHOOK_SECRET") or None,
        webhook_urls=tuple(u.strip() for u in urls.split(",") if u.strip()),
        payment_base_url=env.get("X402_PAYMENT_BASE_URL", defaults.payment_base_url),
        price_amount=_to_number(
            env.get("X402_PRICE_AMOUNT", str(defaults.price_amount)),
            "X402_PRICE_AMOUNT",
            int,
        ),
        price_currency=env.get("X402_PRICE_CURRENCY", defaults.price_currency),
    )
