"""Shared pytest fixtures."""

import pytest

import mimirbridge.config

_SETTINGS_ENV = [
    "SCRAPE_URL",
    "PUSH_URL",
    "SCRAPE_INTERVAL_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "TENANT_ID",
    "PUSH_USERNAME",
    "PUSH_PASSWORD",
    "SKIP_EMPTY_PUSH",
    "SEND_METADATA",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep host environment and config files out of every test."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    mimirbridge.config.reset_settings()
    yield
    mimirbridge.config.reset_settings()


COUNTER_EXPOSITION = """\
# HELP app_requests_total Total requests.
# TYPE app_requests_total counter
app_requests_total{method="GET"} 5
"""

HISTOGRAM_EXPOSITION = """\
# HELP request_duration_seconds Request duration.
# TYPE request_duration_seconds histogram
request_duration_seconds_bucket{path="/",le="0.1"} 1
request_duration_seconds_bucket{path="/",le="0.5"} 3
request_duration_seconds_bucket{path="/",le="+Inf"} 4
request_duration_seconds_sum{path="/"} 1.7
request_duration_seconds_count{path="/"} 4
"""

SUMMARY_EXPOSITION = """\
# TYPE rpc_latency_seconds summary
rpc_latency_seconds{service="auth",quantile="0.5"} 0.2
rpc_latency_seconds{service="auth",quantile="0.9"} 0.4
rpc_latency_seconds_sum{service="auth"} 12.5
rpc_latency_seconds_count{service="auth"} 50
"""


@pytest.fixture
def counter_exposition():
    return COUNTER_EXPOSITION


@pytest.fixture
def histogram_exposition():
    return HISTOGRAM_EXPOSITION


@pytest.fixture
def summary_exposition():
    return SUMMARY_EXPOSITION
