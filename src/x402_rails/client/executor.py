import asyncio
from typing import Any, Awaitable, Callable

import httpx

from x402_rails.client.retry import RetryPolicy
from x402_rails.config import ClientConfig
from x402_rails.errors import HttpError, NetworkError
from x402_rails.log import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _response_body(response: httpx.Response) -> dict | str:
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestExecutor:
    """Performs one logical HTTP call with a per-attempt timeout and bounded retry.

    After the retries are exhausted the last error is raised as is, so callers
    can still tell a NetworkError from an HttpError.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.policy = policy or RetryPolicy(max_retries=config.max_retries)
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Accept": "application/json",
            },
            transport=transport,
            # Timeouts are enforced per attempt with asyncio.wait_for
            timeout=None,
        )

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def execute(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        params: dict | None = None,
        allow_statuses: tuple[int, ...] = (),
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        retries = 0
        while True:
            try:
                return await self._attempt(method, path, body, params, headers, allow_statuses)
            except (NetworkError, HttpError) as error:
                if not self.policy.should_retry(error) or not self.policy.has_attempts_remaining(retries):
                    raise
                retries += 1
                delay = self.policy.next_delay(retries)
                logger.warning(
                    "request_retry_scheduled",
                    method=method,
                    path=path,
                    retry=retries,
                    delay=delay,
                    error=str(error),
                )
                await self._sleep(delay)

    async def _attempt(
        self,
        method: str,
        path: str,
        body: dict | None,
        params: dict | None,
        headers: dict[str, str] | None,
        allow_statuses: tuple[int, ...],
    ) -> httpx.Response:
        try:
            response = await asyncio.wait_for(
                self._client.request(method, path, json=body, params=params, headers=headers),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"{method} {path} timed out after {self.config.timeout}s", reason="timeout"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.is_success or response.status_code in allow_statuses:
            return response
        raise HttpError(response.status_code, _response_body(response))
