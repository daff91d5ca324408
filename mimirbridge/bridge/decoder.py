"""Text-exposition decoder.

This module turns a Prometheus text-exposition stream into typed
:class:`~mimirbridge.bridge.models.MetricFamily` records. Line parsing is done
by ``prometheus_client``'s parser, which yields flat samples (``x_bucket``,
``x_sum``, ``x_count``, ...). The decoder regroups those samples per label set
into one typed :class:`~mimirbridge.bridge.models.Metric` each.
"""

import io
from typing import IO, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import structlog
from prometheus_client.parser import text_fd_to_metric_families

from mimirbridge.bridge.models import (
    Bucket,
    Histogram,
    Label,
    Metric,
    MetricFamily,
    MetricType,
    Quantile,
    Summary,
)
from mimirbridge.exceptions import DecodeError

logger = structlog.get_logger(__name__)

ExpositionSource = Union[bytes, bytearray, str, IO[str], IO[bytes]]

# prometheus_client reports families without a TYPE line as "unknown"
_TYPE_MAP = {
    "counter": MetricType.COUNTER,
    "gauge": MetricType.GAUGE,
    "untyped": MetricType.UNTYPED,
    "unknown": MetricType.UNTYPED,
    "summary": MetricType.SUMMARY,
    "histogram": MetricType.HISTOGRAM,
}

_LabelKey = Tuple[Tuple[str, str], ...]


class _LineTracker:
    """Feeds lines to the parser, remembering the last line and TYPE declarations."""

    def __init__(self, lines: Iterable[str]):
        self._lines = lines
        self.last_line = ""
        self.declared: Dict[str, str] = {}

    def __iter__(self) -> Iterator[str]:
        for line in self._lines:
            self.last_line = line.strip()
            if self.last_line.startswith("#"):
                parts = self.last_line.split(None, 3)
                if len(parts) == 4 and parts[1] == "TYPE":
                    self.declared[parts[2]] = parts[3]
            yield line


class _MetricBuilder:
    """Accumulates the flat samples of one label set into a Metric."""

    def __init__(self, family: str, labels: List[Label]):
        self.family = family
        self.metric = Metric(labels=labels)
        self._seen: set = set()

    def _mark(self, part: str) -> None:
        if part in self._seen:
            raise DecodeError(f"duplicate series in family {self.family}", self.describe(part))
        self._seen.add(part)

    def describe(self, part: str = "") -> str:
        labels = ",".join(f'{label.name}="{label.value}"' for label in self.metric.labels)
        return f"{self.family}{{{labels}}} {part}".strip()

    def set_value(self, value: float) -> None:
        self._mark("value")
        self.metric.value = value

    def summary(self) -> Summary:
        if self.metric.summary is None:
            self.metric.summary = Summary()
        return self.metric.summary

    def histogram(self) -> Histogram:
        if self.metric.histogram is None:
            self.metric.histogram = Histogram()
        return self.metric.histogram

    def add_quantile(self, quantile: str, value: float) -> None:
        self._mark(f"quantile={quantile}")
        self.summary().quantiles.append(Quantile(_parse_float(quantile, self.describe()), value))

    def add_bucket(self, le: str, value: float) -> None:
        upper_bound = _parse_float(le, self.describe(f"le={le}"))
        self._mark(f"le={upper_bound!r}")
        self.histogram().buckets.append(Bucket(upper_bound, value))

    def set_sum(self, value: float, summary: bool) -> None:
        self._mark("sum")
        target = self.summary() if summary else self.histogram()
        target.sample_sum = value

    def set_count(self, value: float, summary: bool) -> None:
        self._mark("count")
        target = self.summary() if summary else self.histogram()
        target.sample_count = value


def _parse_float(text: str, fragment: str) -> float:
    try:
        return float(text)
    except ValueError as e:
        raise DecodeError(f"invalid number {text!r}", fragment) from e


def _to_text_lines(source: ExpositionSource) -> Iterable[str]:
    if isinstance(source, (bytes, bytearray)):
        try:
            return io.StringIO(bytes(source).decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodeError(f"input is not valid UTF-8: {e}") from e
    if isinstance(source, str):
        return io.StringIO(source)
    if isinstance(source, io.TextIOBase):
        return source
    return io.TextIOWrapper(source, encoding="utf-8")


class ExpositionDecoder:
    """Decoder for the Prometheus text-exposition format (version 0.0.4).

    Example:
        decoder = ExpositionDecoder()

        for family in decoder.decode(response_body):
            print(family.name, family.type, len(family.metrics))
    """

    def decode(self, source: ExpositionSource) -> Iterator[MetricFamily]:
        """Lazily decode metric families from ``source``.

        The sequence ends at end-of-stream and cannot be restarted. An empty
        stream yields nothing.

        Raises:
            DecodeError: On a malformed line, an unsupported type, or a family
                or series that appears twice in the same scrape.
        """
        tracker = _LineTracker(_to_text_lines(source))
        seen_names: set = set()
        pending: Optional[MetricFamily] = None

        for family in self._parse(tracker):
            if (
                pending is not None
                and family.name == pending.name
                and family.type is MetricType.UNTYPED
                and pending.type is MetricType.UNTYPED
                and family.name not in tracker.declared
            ):
                self._merge_untyped(pending, family)
                continue

            if pending is not None:
                yield pending

            if family.name in seen_names:
                raise DecodeError(f"duplicate metric family {family.name}", family.name)
            seen_names.add(family.name)
            pending = family

        if pending is not None:
            yield pending

    def _parse(self, tracker: _LineTracker) -> Iterator[MetricFamily]:
        parsed = text_fd_to_metric_families(tracker)
        while True:
            try:
                raw = next(parsed)
            except StopIteration:
                return
            except (ValueError, IndexError, KeyError, TypeError) as e:
                raise DecodeError(str(e) or type(e).__name__, tracker.last_line) from e

            metric_type = _TYPE_MAP.get(raw.type)
            if metric_type is None:
                raise DecodeError(f"unsupported metric type {raw.type!r}", tracker.last_line)

            family = MetricFamily(
                name=self._exposed_name(raw.name, metric_type, tracker.declared),
                type=metric_type,
                help=raw.documentation or "",
            )
            family.metrics = self._group_samples(raw.name, family, raw.samples)

            logger.debug(
                "family_decoded",
                family=family.name,
                type=family.type.value,
                metrics=len(family.metrics),
            )
            yield family

    @staticmethod
    def _exposed_name(parsed_name: str, metric_type: MetricType, declared: Dict[str, str]) -> str:
        # The parser strips "_total" from counter family names.
        if metric_type is MetricType.COUNTER:
            with_total = parsed_name + "_total"
            if with_total in declared or parsed_name not in declared:
                return with_total
        return parsed_name

    @staticmethod
    def _group_samples(base: str, family: MetricFamily, samples) -> List[Metric]:
        builders: Dict[_LabelKey, _MetricBuilder] = {}
        is_summary = family.type is MetricType.SUMMARY

        for sample in samples:
            labels = dict(sample.labels)
            le = labels.pop("le", None) if family.type is MetricType.HISTOGRAM else None
            quantile = labels.pop("quantile", None) if is_summary else None

            key = tuple(sorted(labels.items()))
            builder = builders.get(key)
            if builder is None:
                builder = _MetricBuilder(
                    family.name, [Label(name, value) for name, value in labels.items()]
                )
                builders[key] = builder

            value = float(sample.value)
            suffix = sample.name[len(base):] if sample.name.startswith(base) else None

            if family.type is MetricType.COUNTER:
                if suffix == "_total":
                    builder.set_value(value)
            elif family.type in (MetricType.GAUGE, MetricType.UNTYPED):
                if suffix == "":
                    builder.set_value(value)
            elif suffix == "_sum":
                builder.set_sum(value, summary=is_summary)
            elif suffix == "_count":
                builder.set_count(value, summary=is_summary)
            elif is_summary and suffix == "" and quantile is not None:
                builder.add_quantile(quantile, value)
            elif not is_summary and suffix == "_bucket":
                if le is None:
                    raise DecodeError("histogram bucket without le label", builder.describe())
                builder.add_bucket(le, value)

        return [builder.metric for builder in builders.values()]

    @staticmethod
    def _merge_untyped(target: MetricFamily, extra: MetricFamily) -> None:
        existing = {
            tuple(sorted((label.name, label.value) for label in metric.labels))
            for metric in target.metrics
        }
        for metric in extra.metrics:
            key = tuple(sorted((label.name, label.value) for label in metric.labels))
            if key in existing:
                raise DecodeError(f"duplicate series in family {target.name}", target.name)
            existing.add(key)
            target.metrics.append(metric)


def decode_families(source: ExpositionSource) -> List[MetricFamily]:
    """Decode a whole exposition, discarding everything if any record is malformed."""
    return list(ExpositionDecoder().decode(source))
