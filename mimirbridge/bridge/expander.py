"""Metric family to remote-write time series expansion."""

import math
import time
from typing import Iterable, List, Optional

import structlog
from prometheus_client.utils import floatToGoString

from mimirbridge.bridge.models import (
    METRIC_NAME_LABEL,
    Label,
    Metric,
    MetricFamily,
    MetricMetadata,
    MetricType,
    Sample,
    TimeSeries,
    WriteBatch,
)

logger = structlog.get_logger(__name__)

BUCKET_LABEL = "le"
SUMMARY_LABEL = "quantile"
SUM_DISCRIMINATOR = "sum"
COUNT_DISCRIMINATOR = "count"


def format_bound(value: float) -> str:
    """Render a bucket bound the way Go's ``%v`` prints a float64."""
    # floatToGoString only switches to exponent form for positive values
    if value < 0 and not math.isinf(value):
        return "-" + format_bound(-value)
    text = floatToGoString(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def now_ms() -> int:
    return int(time.time() * 1000)


class SeriesExpander:
    """Flatten metric families into single-sample time series.

    Counters, gauges and untyped metrics become one series each. Summaries
    become two series tagged ``quantile="sum"`` and ``quantile="count"``.
    Histograms become one series per bucket tagged with its ``le`` bound,
    plus ``le="sum"`` and ``le="count"``.

    Metrics whose payload is missing for the family type are skipped.

    Example:
        expander = SeriesExpander()

        batch = expander.build_batch(families)
        print(f"{len(batch)} series at {batch.timestamp}")
    """

    def __init__(self, include_metadata: bool = False):
        self.include_metadata = include_metadata

    def expand_family(self, family: MetricFamily, timestamp: int) -> List[TimeSeries]:
        """Expand one family into zero or more time series stamped with ``timestamp``."""
        series: List[TimeSeries] = []
        skipped = 0

        for metric in family.metrics:
            expanded = self._expand_metric(family, metric, timestamp)
            if not expanded:
                skipped += 1
            series.extend(expanded)

        if skipped:
            logger.debug(
                "metrics_skipped",
                family=family.name,
                type=family.type.value,
                skipped=skipped,
            )

        return series

    def build_batch(
        self,
        families: Iterable[MetricFamily],
        timestamp: Optional[int] = None,
    ) -> WriteBatch:
        """Expand all families into one batch sharing a single capture timestamp."""
        if timestamp is None:
            timestamp = now_ms()

        batch = WriteBatch(timestamp=timestamp)
        for family in families:
            batch.timeseries.extend(self.expand_family(family, timestamp))
            if self.include_metadata:
                batch.metadata.append(
                    MetricMetadata(
                        type=family.type,
                        metric_family_name=family.name,
                        help=family.help,
                    )
                )

        return batch

    def _expand_metric(
        self, family: MetricFamily, metric: Metric, timestamp: int
    ) -> List[TimeSeries]:
        base = [Label(METRIC_NAME_LABEL, family.name)]
        base.extend(metric.labels)

        if family.type.is_scalar:
            if metric.value is None:
                return []
            return [_series(base, metric.value, timestamp)]

        if family.type is MetricType.SUMMARY:
            summary = metric.summary
            if summary is None:
                return []
            return [
                _series(base, summary.sample_sum, timestamp, SUMMARY_LABEL, SUM_DISCRIMINATOR),
                _series(
                    base,
                    float(summary.sample_count),
                    timestamp,
                    SUMMARY_LABEL,
                    COUNT_DISCRIMINATOR,
                ),
            ]

        histogram = metric.histogram
        if histogram is None:
            return []

        series = [
            _series(
                base,
                float(bucket.cumulative_count),
                timestamp,
                BUCKET_LABEL,
                format_bound(bucket.upper_bound),
            )
            for bucket in histogram.buckets
        ]
        series.append(
            _series(base, histogram.sample_sum, timestamp, BUCKET_LABEL, SUM_DISCRIMINATOR)
        )
        series.append(
            _series(
                base,
                float(histogram.sample_count),
                timestamp,
                BUCKET_LABEL,
                COUNT_DISCRIMINATOR,
            )
        )
        return series


def _series(
    base: List[Label],
    value: float,
    timestamp: int,
    discriminator: Optional[str] = None,
    discriminator_value: str = "",
) -> TimeSeries:
    # each series owns its label list
    labels = list(base)
    if discriminator is not None:
        labels.append(Label(discriminator, discriminator_value))
    return TimeSeries(labels=labels, samples=[Sample(value=value, timestamp=timestamp)])
