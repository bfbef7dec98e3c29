"""HTTP plumbing shared by the provider adapters.

BaseAsyncClient owns one pooled httpx.AsyncClient per `async with` block,
throttles through a per-client RateLimiter and retries transient failures
(429/502/503/504, timeouts, dropped connections) with exponential backoff.
Anything else surfaces as APIProviderError on the first attempt.

Adapters translate their native payloads into ProviderResult so that the
orchestrator only ever handles one shape.

Usage:
    class DirectoryClient(BaseAsyncClient):
        def __init__(self, api_key: str):
            super().__init__("https://api.example.com", headers={"Authorization": f"Bearer {api_key}"})

        async def fetch(self, identifier: str, capability: str, **params) -> ProviderResult:
            payload = await self.post("/lookup", json_data={"domain": identifier})
            return ProviderResult.ok(payload["records"], units_consumed=payload["credits"])
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from dossier.errors import APIProviderError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds, doubled per attempt
_BODY_PREVIEW = 500

__all__ = [
    "APIProviderError",
    "BaseAsyncClient",
    "Provider",
    "ProviderResult",
    "RateLimiter",
]


@dataclass
class ProviderResult:
    """What every adapter hands back to the orchestrator.

    Attributes:
        success: True when `data` holds a usable payload
        data: Adapter-specific payload
        error: Reason for failure
        units_consumed: Credits or tokens billed for the call, even on failure
        status_code: Upstream HTTP status, if the failure came from one
    """

    success: bool
    data: Any = None
    error: str | None = None
    units_consumed: int = 0
    status_code: int | None = None

    @classmethod
    def ok(cls, data: Any, units_consumed: int = 0) -> "ProviderResult":
        return cls(True, data=data, units_consumed=units_consumed)

    @classmethod
    def fail(cls, error: str, units_consumed: int = 0, status_code: int | None = None) -> "ProviderResult":
        return cls(False, error=error, units_consumed=units_consumed, status_code=status_code)


class Provider(Protocol):
    """A source the orchestrator can ask for one capability of one entity."""

    async def fetch(self, identifier: str, capability: str, **params: Any) -> ProviderResult:
        ...


class RateLimiter:
    """Token bucket shared by every request a client makes.

    The bucket starts full and refills continuously at `rate` tokens per
    second; acquire() sleeps just long enough for the next whole token.

    Args:
        rate: Sustained requests per second (also the burst size)
    """

    def __init__(self, rate: int) -> None:
        self.rate = rate
        self.tokens: float = rate
        self._last_refill: float | None = None
        self._lock = asyncio.Lock()

    def _refill(self, now: float) -> None:
        if self._last_refill is not None:
            self.tokens = min(self.rate, self.tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping while the bucket is empty."""
        loop = asyncio.get_running_loop()
        async with self._lock:
            self._refill(loop.time())
            while self.tokens < 1:
                await asyncio.sleep((1 - self.tokens) / self.rate)
                self._refill(loop.time())
            self.tokens -= 1


class BaseAsyncClient:
    """Rate-limited, retrying JSON-over-HTTP client.

    Args:
        base_url: Provider root; endpoints are joined onto it
        headers: Sent with every request (auth, content type)
        rate_limit: Requests per second
        timeout: Per-request timeout in seconds
        max_retries: Extra attempts for transient failures. Pass 0 when the
            caller already retries at a higher level.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        rate_limit: int = 10,
        timeout: float = 30.0,
        max_retries: int = _MAX_RETRIES,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.max_retries = max_retries
        self._rate_limiter = RateLimiter(rate=rate_limit)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BaseAsyncClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self._request("POST", endpoint, params=params, json_data=json_data)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send one logical request, retrying transient failures.

        Returns:
            Decoded JSON body

        Raises:
            APIProviderError: Non-retryable failure, or retries exhausted
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async with context manager.")

        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            await self._rate_limiter.acquire()
            logger.debug("%s %s%s (attempt %d/%d)", method, self.base_url, path, attempt + 1, attempts)
            try:
                response = await self._client.request(method, path, params=params, json=json_data)
            except httpx.TimeoutException as e:
                error = APIProviderError(f"Request timeout: {e}")
            except httpx.NetworkError as e:
                error = APIProviderError(f"Network error: {e}")
            else:
                if response.status_code < 400:
                    return self._decode(response)
                error = self._status_error(response)
                if response.status_code not in _RETRYABLE_STATUS_CODES:
                    logger.error("%s %s failed: %s", method, path, error.response_body)
                    raise error

            if attempt == self.max_retries:
                logger.error("%s %s gave up after %d attempt(s): %s", method, path, attempts, error)
                raise error

            delay = _BASE_BACKOFF * 2 ** attempt
            logger.warning(
                "%s for %s, retrying in %.1fs (attempt %d/%d)",
                error, path, delay, attempt + 1, attempts,
            )
            await asyncio.sleep(delay)

        raise APIProviderError("Request failed after retries")

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIProviderError(
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
                response_body=response.text[:_BODY_PREVIEW],
            ) from e

    @staticmethod
    def _status_error(response: httpx.Response) -> APIProviderError:
        status = response.status_code
        if status == 401:
            message = "Authentication failed: invalid API key"
        elif status == 429:
            message = "Rate limit exceeded"
        elif status >= 500:
            message = f"Provider server error: {status}"
        else:
            message = f"API request failed: {status}"
        return APIProviderError(message, status_code=status, response_body=response.text[:_BODY_PREVIEW])
