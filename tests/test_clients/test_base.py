"""Tests for the base async client and the provider envelope."""

import asyncio
import json

import httpx
import pytest

from dossier.clients import base
from dossier.clients.base import APIProviderError, BaseAsyncClient, ProviderResult, RateLimiter


@pytest.fixture
def no_backoff(monkeypatch):
    """Retry without sleeping."""
    monkeypatch.setattr(base, "_BASE_BACKOFF", 0.0)


class TestProviderResult:
    """Tests for the uniform provider envelope."""

    def test_ok_envelope(self):
        """ok() carries data and units, no error."""
        result = ProviderResult.ok({"x": 1}, units_consumed=12)

        assert result.success is True
        assert result.data == {"x": 1}
        assert result.error is None
        assert result.units_consumed == 12

    def test_fail_envelope(self):
        """fail() keeps the error, the charge and the status."""
        result = ProviderResult.fail("Rate limit exceeded", units_consumed=3, status_code=429)

        assert result.success is False
        assert result.data is None
        assert result.error == "Rate limit exceeded"
        assert result.units_consumed == 3
        assert result.status_code == 429


class TestRateLimiter:
    """Tests for the per-client token bucket."""

    @pytest.mark.asyncio
    async def test_burst_within_bucket(self):
        """A full bucket serves a burst without sleeping."""
        limiter = RateLimiter(rate=8)

        for _ in range(8):
            await limiter.acquire()

        assert limiter.tokens < 1

    @pytest.mark.asyncio
    async def test_waits_when_bucket_empty(self):
        """An empty bucket waits for the next token."""
        limiter = RateLimiter(rate=2)
        loop = asyncio.get_running_loop()

        start = loop.time()
        await limiter.acquire()
        await limiter.acquire()
        first_duration = loop.time() - start

        start = loop.time()
        await limiter.acquire()
        third_duration = loop.time() - start

        assert first_duration < 0.1
        assert third_duration > 0.3


class TestBaseAsyncClient:
    """Tests for request plumbing and error mapping."""

    @pytest.mark.asyncio
    async def test_client_exists_only_inside_context(self, respx_mock):
        """The pooled httpx client exists only inside async with."""
        respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(200, json={"domain": "acme.com"})
        )

        async with BaseAsyncClient(
            base_url="https://provider.test/v1",
            headers={"Authorization": "Bearer test_key"},
        ) as client:
            assert client._client is not None
            result = await client.get("/lookup")
            assert result == {"domain": "acme.com"}

        assert client._client is None

    @pytest.mark.asyncio
    async def test_refuses_requests_outside_context(self):
        """Requests outside async with are refused."""
        client = BaseAsyncClient(base_url="https://provider.test/v1")

        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get("/lookup")

    @pytest.mark.asyncio
    async def test_endpoint_slash_is_optional(self, respx_mock):
        """Endpoints are joined with or without a leading slash."""
        respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(200, json={"records": []})
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1/") as client:
            assert await client.get("/lookup") == {"records": []}
            assert await client.get("lookup") == {"records": []}

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, respx_mock):
        """post() sends its payload as JSON."""
        route = respx_mock.post("https://provider.test/v1/search").mock(
            return_value=httpx.Response(200, json={"ok": True})
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1") as client:
            result = await client.post("/search", json_data={"q": "acme"})

        assert result == {"ok": True}
        assert json.loads(route.calls.last.request.content) == {"q": "acme"}

    @pytest.mark.asyncio
    async def test_auth_failure_is_described(self, respx_mock):
        """401 maps to a readable authentication message."""
        respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(401, text="unauthorized")
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1") as client:
            with pytest.raises(APIProviderError) as exc_info:
                await client.get("/lookup")

        assert exc_info.value.status_code == 401
        assert "Authentication failed" in str(exc_info.value)
        assert exc_info.value.response_body == "unauthorized"

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self, respx_mock):
        """A non-JSON body becomes APIProviderError."""
        respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(200, text="not json")
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1") as client:
            with pytest.raises(APIProviderError, match="Invalid JSON"):
                await client.get("/lookup")


class TestRetry:
    """Tests for transport-level retries."""

    @pytest.mark.asyncio
    async def test_retries_on_429_then_succeeds(self, respx_mock, no_backoff):
        """A retryable status is retried until success."""
        route = respx_mock.get("https://provider.test/v1/lookup")
        route.side_effect = [
            httpx.Response(429, text="slow down"),
            httpx.Response(200, json={"ok": True}),
        ]

        async with BaseAsyncClient(base_url="https://provider.test/v1", rate_limit=100) as client:
            result = await client.get("/lookup")

        assert result == {"ok": True}
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_does_not_retry_404(self, respx_mock, no_backoff):
        """Non-retryable statuses raise immediately."""
        route = respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(404, text="missing")
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1") as client:
            with pytest.raises(APIProviderError) as exc_info:
                await client.get("/lookup")

        assert exc_info.value.status_code == 404
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_exhausts_retries(self, respx_mock, no_backoff):
        """Persistent 503 raises after max_retries + 1 attempts."""
        route = respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(503, text="down")
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1", rate_limit=100) as client:
            with pytest.raises(APIProviderError) as exc_info:
                await client.get("/lookup")

        assert exc_info.value.status_code == 503
        assert route.call_count == 4

    @pytest.mark.asyncio
    async def test_zero_retries_makes_one_call(self, respx_mock, no_backoff):
        """max_retries=0 leaves retrying to the caller."""
        route = respx_mock.get("https://provider.test/v1/lookup").mock(
            return_value=httpx.Response(503, text="down")
        )

        async with BaseAsyncClient(base_url="https://provider.test/v1", max_retries=0) as client:
            with pytest.raises(APIProviderError):
                await client.get("/lookup")

        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_on_timeout(self, respx_mock, no_backoff):
        """Timeouts are retried like transient statuses."""
        route = respx_mock.get("https://provider.test/v1/lookup")
        route.side_effect = [
            httpx.ReadTimeout("timed out"),
            httpx.Response(200, json={"ok": True}),
        ]

        async with BaseAsyncClient(base_url="https://provider.test/v1") as client:
            result = await client.get("/lookup")

        assert result == {"ok": True}
        assert route.call_count == 2
