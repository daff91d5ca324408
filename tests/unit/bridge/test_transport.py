"""Tests for the scrape/push HTTP transport."""

import base64

import httpx
import pytest

from mimirbridge.bridge.transport import TransportClient
from mimirbridge.exceptions import PushError, ScrapeError

SCRAPE_URL = "http://app.test/metrics"
PUSH_URL = "http://mimir.test/api/v1/push"


class RecordingHandler:
    """httpx mock handler that records requests and replays a fixed response."""

    def __init__(self, status_code=200, body=b"", error=None):
        self.status_code = status_code
        self.body = body
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def make_transport():
    def factory(handler, **kwargs):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return TransportClient(SCRAPE_URL, PUSH_URL, timeout=2.0, client=client, **kwargs)

    return factory


class TestScrape:
    @pytest.mark.asyncio
    async def test_scrape_returns_body(self, make_transport, counter_exposition):
        handler = RecordingHandler(body=counter_exposition.encode())
        transport = make_transport(handler)

        body = await transport.scrape()

        assert body == counter_exposition.encode()
        assert handler.requests[0].method == "GET"
        assert handler.requests[0].headers["Accept"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_non_2xx_fails(self, make_transport):
        transport = make_transport(RecordingHandler(status_code=503))

        with pytest.raises(ScrapeError) as exc_info:
            await transport.scrape()

        assert exc_info.value.status_code == 503
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_fails(self, make_transport):
        handler = RecordingHandler(
            error=lambda request: httpx.ConnectError("connection refused", request=request)
        )
        transport = make_transport(handler)

        with pytest.raises(ScrapeError, match="connection refused"):
            await transport.scrape()

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_fails(self, make_transport):
        handler = RecordingHandler(
            error=lambda request: httpx.ReadTimeout("read timed out", request=request)
        )
        transport = make_transport(handler)

        with pytest.raises(ScrapeError, match="timed out"):
            await transport.scrape()


class TestPush:
    @pytest.mark.asyncio
    async def test_push_sends_remote_write_headers(self, make_transport):
        handler = RecordingHandler(status_code=204)
        transport = make_transport(handler)

        status = await transport.push(b"payload")

        assert status == 204
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.content == b"payload"
        assert request.headers["Content-Encoding"] == "snappy"
        assert request.headers["Content-Type"] == "application/x-protobuf"
        assert request.headers["X-Prometheus-Remote-Write-Version"] == "0.1.0"
        assert "X-Scope-OrgID" not in request.headers
        assert "Authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_tenant_and_basic_auth(self, make_transport):
        handler = RecordingHandler(status_code=200)
        transport = make_transport(handler, tenant_id="team-a", auth=("bridge", "s3cret"))

        await transport.push(b"payload")

        request = handler.requests[0]
        assert request.headers["X-Scope-OrgID"] == "team-a"
        expected = base64.b64encode(b"bridge:s3cret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_error_response_body_is_reported(self, make_transport):
        handler = RecordingHandler(status_code=500, body=b"out of memory")
        transport = make_transport(handler)

        with pytest.raises(PushError) as exc_info:
            await transport.push(b"payload")

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "out of memory"
        assert "out of memory" in str(exc_info.value)
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_push_connection_error(self, make_transport):
        handler = RecordingHandler(
            error=lambda request: httpx.ConnectError("no route to host", request=request)
        )
        transport = make_transport(handler)

        with pytest.raises(PushError, match="no route to host"):
            await transport.push(b"payload")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        transport = TransportClient(SCRAPE_URL, PUSH_URL, timeout=1.0)

        async with transport:
            pass

        assert transport._client.is_closed
