"""Prometheus remote write protocol encoder.

This module serializes write batches into remote-write Protobuf messages,
compresses them with Snappy block compression, and provides the inverse
decoding used for diagnostics.
"""

from typing import Any, Dict, Optional

import snappy
import structlog
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import EncodeError as ProtobufEncodeError

from mimirbridge.bridge import remote_pb2
from mimirbridge.bridge.models import (
    METRIC_NAME_LABEL,
    Label,
    MetricMetadata,
    MetricType,
    Sample,
    TimeSeries,
    WriteBatch,
)
from mimirbridge.exceptions import EncodeError

logger = structlog.get_logger(__name__)

CONTENT_TYPE = "application/x-protobuf"
CONTENT_ENCODING = "snappy"
REMOTE_WRITE_VERSION = "0.1.0"

_METADATA_TYPES = {
    MetricType.COUNTER: "COUNTER",
    MetricType.GAUGE: "GAUGE",
    MetricType.UNTYPED: "UNKNOWN",
    MetricType.SUMMARY: "SUMMARY",
    MetricType.HISTOGRAM: "HISTOGRAM",
}
_MODEL_TYPES = {wire: model for model, wire in _METADATA_TYPES.items()}


def _model_type(value: int) -> MetricType:
    try:
        name = remote_pb2.MetricMetadata.MetricType.Name(value)
    except ValueError:
        return MetricType.UNTYPED
    return _MODEL_TYPES.get(name, MetricType.UNTYPED)


class PrometheusRemoteWrite:
    """Encoder for the Prometheus remote write protocol.

    Protocol details:
    - Content-Type: application/x-protobuf
    - Content-Encoding: snappy
    - X-Prometheus-Remote-Write-Version: 0.1.0
    - Body: Snappy-compressed Protobuf WriteRequest message

    Example:
        handler = PrometheusRemoteWrite()

        payload = handler.encode_write_request(batch)
        headers = handler.request_headers()

        await client.post(push_url, content=payload, headers=headers)
    """

    @staticmethod
    def request_headers() -> Dict[str, str]:
        """Headers every remote-write POST must carry."""
        return {
            "Content-Encoding": CONTENT_ENCODING,
            "Content-Type": CONTENT_TYPE,
            "X-Prometheus-Remote-Write-Version": REMOTE_WRITE_VERSION,
        }

    @staticmethod
    def build_write_request(batch: WriteBatch) -> remote_pb2.WriteRequest:
        """Build the Protobuf message for ``batch``, preserving series and label order."""
        write_request = remote_pb2.WriteRequest()

        for series in batch.timeseries:
            message = write_request.timeseries.add()
            for label in series.labels:
                message.labels.add(name=label.name, value=label.value)
            for sample in series.samples:
                message.samples.add(value=sample.value, timestamp=sample.timestamp)

        for metadata in batch.metadata:
            write_request.metadata.add(
                type=remote_pb2.MetricMetadata.MetricType.Value(_METADATA_TYPES[metadata.type]),
                metric_family_name=metadata.metric_family_name,
                help=metadata.help,
                unit=metadata.unit,
            )

        return write_request

    @staticmethod
    def encode_write_request(batch: WriteBatch) -> bytes:
        """Serialize and Snappy-compress a batch.

        An empty batch encodes to a valid message with no time series.

        Args:
            batch: Series to encode

        Returns:
            bytes: Snappy-compressed Protobuf WriteRequest

        Raises:
            EncodeError: If the batch breaks the series invariants or cannot be
                serialized

        Example:
            >>> handler = PrometheusRemoteWrite()
            >>> payload = handler.encode_write_request(batch)
            >>> print(f"Encoded {len(batch)} series into {len(payload)} bytes")
        """
        is_valid, error_msg = PrometheusRemoteWrite.validate_batch(batch)
        if not is_valid:
            logger.error("invalid_write_batch", error=error_msg)
            raise EncodeError(f"invalid batch: {error_msg}")

        try:
            write_request = PrometheusRemoteWrite.build_write_request(batch)
            serialized = write_request.SerializeToString()
        except (ProtobufEncodeError, TypeError, ValueError) as e:
            logger.error("write_request_encode_failed", error=str(e))
            raise EncodeError(str(e)) from e

        compressed = snappy.compress(serialized)

        logger.debug(
            "write_request_encoded",
            timeseries=len(batch.timeseries),
            metadata=len(batch.metadata),
            serialized_bytes=len(serialized),
            compressed_bytes=len(compressed),
        )

        return compressed

    @staticmethod
    def decode_write_request(compressed_data: bytes) -> remote_pb2.WriteRequest:
        """Decode a Snappy-compressed Protobuf WriteRequest.

        Raises:
            ValueError: If decompression or decoding fails
        """
        try:
            decompressed = snappy.decompress(compressed_data)
        except snappy.UncompressError as e:
            raise ValueError(f"Failed to decompress remote write request: {e}") from e

        write_request = remote_pb2.WriteRequest()
        try:
            write_request.ParseFromString(decompressed)
        except ProtobufDecodeError as e:
            raise ValueError(f"Failed to decode remote write request: {e}") from e

        return write_request

    @staticmethod
    def to_batch(write_request: remote_pb2.WriteRequest) -> WriteBatch:
        """Convert a decoded WriteRequest back into a batch.

        The batch timestamp is taken from the first sample (0 when there is none).
        """
        timeseries = [
            TimeSeries(
                labels=[Label(label.name, label.value) for label in ts.labels],
                samples=[Sample(value=s.value, timestamp=s.timestamp) for s in ts.samples],
            )
            for ts in write_request.timeseries
        ]
        metadata = [
            MetricMetadata(
                type=_model_type(m.type),
                metric_family_name=m.metric_family_name,
                help=m.help,
                unit=m.unit,
            )
            for m in write_request.metadata
        ]

        timestamp = 0
        for series in timeseries:
            if series.samples:
                timestamp = series.samples[0].timestamp
                break

        return WriteBatch(timestamp=timestamp, timeseries=timeseries, metadata=metadata)

    @staticmethod
    def validate_batch(batch: WriteBatch) -> tuple[bool, Optional[str]]:
        """Check that every series carries ``__name__`` once and exactly one sample.

        Returns:
            tuple: (is_valid, error_message)
        """
        for idx, series in enumerate(batch.timeseries):
            names = [label.name for label in series.labels]
            if not names:
                return False, f"Time series {idx} has no labels"
            if names.count(METRIC_NAME_LABEL) != 1:
                return False, f"Time series {idx} must carry exactly one __name__ label"
            if len(set(names)) != len(names):
                return False, f"Time series {idx} has duplicate label names"
            if len(series.samples) != 1:
                return False, f"Time series {idx} has {len(series.samples)} samples"
            if series.samples[0].timestamp != batch.timestamp:
                return False, f"Time series {idx} has a foreign timestamp"

        return True, None

    @staticmethod
    def get_statistics(batch: WriteBatch) -> Dict[str, Any]:
        """Summarise a batch: series, samples, unique metric and label names."""
        unique_metrics = set()
        unique_labels = set()
        total_samples = 0

        for series in batch.timeseries:
            total_samples += len(series.samples)
            for label in series.labels:
                unique_labels.add(label.name)
                if label.name == METRIC_NAME_LABEL:
                    unique_metrics.add(label.value)

        return {
            "total_time_series": len(batch.timeseries),
            "total_samples": total_samples,
            "total_metadata": len(batch.metadata),
            "unique_metrics": len(unique_metrics),
            "unique_labels": len(unique_labels),
            "timestamp": batch.timestamp,
        }
