"""Prometheus text-exposition to remote-write bridge.

This package scrapes metrics exposed in the text-exposition format, expands
them into single-sample time series, and pushes them to a remote-write
endpoint as Snappy-compressed Protobuf.
"""

from mimirbridge.bridge.decoder import ExpositionDecoder, decode_families
from mimirbridge.bridge.expander import SeriesExpander
from mimirbridge.bridge.pipeline import BridgePipeline, CycleResult, CycleState
from mimirbridge.bridge.protocol import PrometheusRemoteWrite
from mimirbridge.bridge.scheduler import PeriodicScheduler
from mimirbridge.bridge.transport import TransportClient

__all__ = [
    "BridgePipeline",
    "CycleResult",
    "CycleState",
    "ExpositionDecoder",
    "PeriodicScheduler",
    "PrometheusRemoteWrite",
    "SeriesExpander",
    "TransportClient",
    "decode_families",
]
