"""Tests for the bridge CLI commands."""

import json
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from mimirbridge.bridge.protocol import PrometheusRemoteWrite
from mimirbridge.bridge.transport import TransportClient
from mimirbridge.cli.main import app

runner = CliRunner()

SCRAPE_URL = "http://app.test/metrics"
PUSH_URL = "http://mimir.test/api/v1/push"


class FakeServers:
    """Serves a fixed exposition body and records remote-write pushes."""

    def __init__(self, exposition: str, push_status: int = 200, push_body: str = ""):
        self.exposition = exposition
        self.scrape_status = 200
        self.push_status = push_status
        self.push_body = push_body
        self.pushes = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(self.scrape_status, text=self.exposition)
        self.pushes.append(request)
        return httpx.Response(self.push_status, text=self.push_body)


@pytest.fixture
def servers(counter_exposition, histogram_exposition, monkeypatch):
    monkeypatch.setenv("SCRAPE_URL", SCRAPE_URL)
    monkeypatch.setenv("PUSH_URL", PUSH_URL)
    monkeypatch.setenv("SCRAPE_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("LOG_FORMAT", "text")
    return FakeServers(counter_exposition + histogram_exposition)


@pytest.fixture
def mocked_transport(servers):
    def build(settings):
        client = httpx.AsyncClient(transport=httpx.MockTransport(servers))
        return TransportClient(
            settings.scrape_url,
            settings.push_url,
            timeout=settings.http_timeout_seconds,
            tenant_id=settings.tenant_id,
            auth=settings.push_auth,
            client=client,
        )

    with patch("mimirbridge.cli.bridge.build_transport", side_effect=build):
        yield servers


class TestOnce:
    """Tests for the once command."""

    def test_once_pushes_batch(self, mocked_transport):
        result = runner.invoke(app, ["once"])

        assert result.exit_code == 0
        assert "Pushed metrics to" in result.output
        assert len(mocked_transport.pushes) == 1

        request = mocked_transport.pushes[0]
        handler = PrometheusRemoteWrite()
        batch = handler.to_batch(handler.decode_write_request(request.content))
        assert len(batch) == 1 + 5

    def test_once_sends_tenant_header(self, mocked_transport, monkeypatch):
        monkeypatch.setenv("TENANT_ID", "team-a")

        result = runner.invoke(app, ["once"])

        assert result.exit_code == 0
        assert mocked_transport.pushes[0].headers["X-Scope-OrgID"] == "team-a"

    def test_once_push_failure(self, mocked_transport):
        mocked_transport.push_status = 500
        mocked_transport.push_body = "ingester_unavailable"

        result = runner.invoke(app, ["once"])

        assert result.exit_code == 1
        assert "Cycle failed during pushing" in result.output
        assert "ingester_unavailable" in result.output

    def test_once_decode_failure(self, mocked_transport):
        mocked_transport.exposition = "# TYPE g gauge\ng 1\ng 2\n"

        result = runner.invoke(app, ["once"])

        assert result.exit_code == 1
        assert "Cycle failed during encoding" in result.output
        assert mocked_transport.pushes == []

    def test_once_skips_empty_batch(self, mocked_transport, monkeypatch):
        monkeypatch.setenv("SKIP_EMPTY_PUSH", "true")
        mocked_transport.exposition = ""

        result = runner.invoke(app, ["once"])

        assert result.exit_code == 0
        assert "push skipped" in result.output
        assert mocked_transport.pushes == []


class TestRun:
    """Tests for the run command."""

    def test_run_fixed_cycles(self, mocked_transport):
        result = runner.invoke(app, ["run", "--cycles", "2"])

        assert result.exit_code == 0
        assert "Starting Prometheus -> Mimir bridge" in result.output
        assert "Bridge Summary" in result.output
        assert len(mocked_transport.pushes) == 2

    def test_run_keeps_going_after_failures(self, mocked_transport):
        mocked_transport.push_status = 503

        result = runner.invoke(app, ["run", "-n", "3"])

        assert result.exit_code == 0
        assert len(mocked_transport.pushes) == 3

    def test_run_rejects_zero_cycles(self, mocked_transport):
        result = runner.invoke(app, ["run", "--cycles", "0"])

        assert result.exit_code != 0
        assert mocked_transport.pushes == []


class TestInspect:
    """Tests for the inspect command."""

    def test_inspect_table(self, mocked_transport):
        result = runner.invoke(app, ["inspect"])

        assert result.exit_code == 0
        assert "app_requests_total" in result.output
        assert mocked_transport.pushes == []

    def test_inspect_json(self, mocked_transport):
        result = runner.invoke(app, ["inspect", "--output", "json", "--limit", "2"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["statistics"]["total_time_series"] == 6
        assert len(data["timeseries"]) == 2
        assert data["timeseries"][0]["labels"] == {
            "__name__": "app_requests_total",
            "method": "GET",
        }
        assert data["timeseries"][0]["value"] == 5.0

    def test_inspect_invalid_output(self, mocked_transport):
        result = runner.invoke(app, ["inspect", "--output", "xml"])

        assert result.exit_code == 1
        assert "Invalid output format" in result.output

    def test_inspect_scrape_failure(self, mocked_transport):
        mocked_transport.scrape_status = 503

        result = runner.invoke(app, ["inspect"])

        assert result.exit_code == 1
        assert "503" in result.output
