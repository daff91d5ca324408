"""In-memory model for scraped metric families and remote-write batches."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

METRIC_NAME_LABEL = "__name__"


class MetricType(str, Enum):
    """Metric types of the text-exposition format."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"
    SUMMARY = "summary"
    HISTOGRAM = "histogram"

    @property
    def is_scalar(self) -> bool:
        return self in (MetricType.COUNTER, MetricType.GAUGE, MetricType.UNTYPED)


@dataclass(frozen=True)
class Label:
    name: str
    value: str


@dataclass
class Bucket:
    upper_bound: float
    cumulative_count: float


@dataclass
class Quantile:
    quantile: float
    value: float


@dataclass
class Summary:
    sample_sum: float = 0.0
    sample_count: float = 0.0
    quantiles: List[Quantile] = field(default_factory=list)


@dataclass
class Histogram:
    sample_sum: float = 0.0
    sample_count: float = 0.0
    buckets: List[Bucket] = field(default_factory=list)


@dataclass
class Metric:
    """One labeled member of a metric family.

    Exactly one payload is populated for well-formed input: ``value`` for
    counters, gauges and untyped metrics, ``summary`` or ``histogram`` for the
    composite types. A payload may be missing when the exposition only carried
    auxiliary samples (for example ``_created``).
    """

    labels: List[Label] = field(default_factory=list)
    value: Optional[float] = None
    summary: Optional[Summary] = None
    histogram: Optional[Histogram] = None


@dataclass
class MetricFamily:
    name: str
    type: MetricType
    help: str = ""
    metrics: List[Metric] = field(default_factory=list)


@dataclass
class Sample:
    value: float
    timestamp: int


@dataclass
class TimeSeries:
    labels: List[Label]
    samples: List[Sample]

    @property
    def name(self) -> str:
        for label in self.labels:
            if label.name == METRIC_NAME_LABEL:
                return label.value
        return ""

    def label_dict(self) -> dict[str, str]:
        return {label.name: label.value for label in self.labels}


@dataclass
class MetricMetadata:
    type: MetricType
    metric_family_name: str
    help: str = ""
    unit: str = ""


@dataclass
class WriteBatch:
    """Series assembled in one expansion pass, sharing one capture timestamp."""

    timestamp: int
    timeseries: List[TimeSeries] = field(default_factory=list)
    metadata: List[MetricMetadata] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.timeseries)

    @property
    def is_empty(self) -> bool:
        return not self.timeseries
