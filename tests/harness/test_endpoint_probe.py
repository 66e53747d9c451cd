"""Tests for EndpointProbe."""

import httpx
import pytest

from e2e_harness.models.harness_models import EndpointCheck
from e2e_harness.verification.endpoint_probe import EndpointProbe


def _probe(handler, base_url="https://example.test"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EndpointProbe(base_url, client=client), client


class TestEndpointProbe:
    """Tests for endpoint checks."""

    @pytest.mark.asyncio
    async def test_relative_url_joined_and_passes(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"pending": 0})

        probe, client = _probe(handler)
        results = await probe.run([EndpointCheck(name="health", url="/api/health", contains="pending")])
        await client.aclose()

        assert seen == ["https://example.test/api/health"]
        assert results[0].passed
        assert results[0].status == 200
        assert results[0].method == "GET"

    @pytest.mark.asyncio
    async def test_status_mismatch(self):
        probe, client = _probe(lambda request: httpx.Response(503))
        results = await probe.run([EndpointCheck(name="health", url="/health")])
        await client.aclose()

        assert not results[0].passed
        assert results[0].error == "Expected HTTP 200, got 503"

    @pytest.mark.asyncio
    async def test_body_must_contain(self):
        probe, client = _probe(lambda request: httpx.Response(200, text="all good"))
        results = await probe.run([EndpointCheck(name="m", url="/m", contains="applied")])
        await client.aclose()

        assert results[0].error == "Response body does not contain 'applied'"

    @pytest.mark.asyncio
    async def test_transport_error_recorded(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        probe, client = _probe(handler)
        results = await probe.run([EndpointCheck(name="down", url="/down")])
        await client.aclose()

        assert not results[0].passed
        assert results[0].status is None
        assert results[0].error.startswith("Request failed")

    @pytest.mark.asyncio
    async def test_timeout_recorded(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        probe, client = _probe(handler)
        results = await probe.run([EndpointCheck(name="slow", url="/slow", timeout_ms=250)])
        await client.aclose()

        assert results[0].error == "Timed out after 250ms"

    @pytest.mark.asyncio
    async def test_headers_expand_environment(self, monkeypatch):
        monkeypatch.setenv("ANON_KEY", "secret-key")
        seen = {}

        def handler(request):
            seen.update(request.headers)
            assert request.method == "POST"
            return httpx.Response(200)

        probe, client = _probe(handler)
        await probe.run(
            [
                EndpointCheck(
                    name="migrate",
                    url="https://functions.example.test/migrate",
                    method="post",
                    headers={"apikey": "${ANON_KEY}"},
                    json_body={"dry_run": True},
                )
            ]
        )
        await client.aclose()

        assert seen["apikey"] == "secret-key"

    @pytest.mark.asyncio
    async def test_no_checks(self):
        assert await EndpointProbe().run([]) == []
