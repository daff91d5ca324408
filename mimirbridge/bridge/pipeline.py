"""Scrape-push cycle for the Mimir bridge.

One cycle scrapes the exposition endpoint, decodes and expands it into a
write batch, encodes the batch and pushes it. Each cycle owns its data; a
failure in any stage drops that cycle and the pipeline returns to idle.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from mimirbridge.bridge.decoder import ExpositionDecoder
from mimirbridge.bridge.expander import SeriesExpander, now_ms
from mimirbridge.bridge.protocol import PrometheusRemoteWrite
from mimirbridge.bridge.transport import TransportClient
from mimirbridge.config import Settings
from mimirbridge.exceptions import BridgeError
from mimirbridge.logging_config import log_error

logger = structlog.get_logger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    SCRAPING = "scraping"
    ENCODING = "encoding"
    PUSHING = "pushing"


@dataclass
class CycleResult:
    """Outcome of one scrape-push cycle."""

    success: bool
    stage: CycleState
    families: int = 0
    timeseries: int = 0
    payload_bytes: int = 0
    skipped: bool = False
    duration_seconds: float = 0.0
    error: Optional[BridgeError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "stage": self.stage.value,
            "families": self.families,
            "timeseries": self.timeseries,
            "payload_bytes": self.payload_bytes,
            "skipped": self.skipped,
            "duration_seconds": round(self.duration_seconds, 4),
            "error": str(self.error) if self.error else None,
        }


@dataclass
class PipelineStats:
    cycles: int = 0
    failures: int = 0
    skipped: int = 0
    last_result: Optional[CycleResult] = field(default=None, repr=False)


class BridgePipeline:
    """
    Drives scrape -> decode -> expand -> encode -> push cycles.

    The pipeline is idle between cycles. Bridge errors are logged and reported
    in the returned :class:`CycleResult`; they never escape :meth:`run_cycle`.

    Example:
        async with TransportClient(scrape_url, push_url) as transport:
            pipeline = BridgePipeline(transport)
            result = await pipeline.run_cycle()
            print(result.to_dict())
    """

    def __init__(
        self,
        transport: TransportClient,
        decoder: Optional[ExpositionDecoder] = None,
        expander: Optional[SeriesExpander] = None,
        protocol: Optional[PrometheusRemoteWrite] = None,
        skip_empty_push: bool = False,
        clock=now_ms,
    ):
        """
        Initialize pipeline.

        Args:
            transport: HTTP transport for scrape and push
            decoder: Exposition decoder (default: new instance)
            expander: Series expander (default: new instance without metadata)
            protocol: Remote-write encoder (default: new instance)
            skip_empty_push: Do not push batches that contain no series
            clock: Returns the capture timestamp in milliseconds
        """
        self.transport = transport
        self.decoder = decoder or ExpositionDecoder()
        self.expander = expander or SeriesExpander()
        self.protocol = protocol or PrometheusRemoteWrite()
        self.skip_empty_push = skip_empty_push
        self.clock = clock
        self.state = CycleState.IDLE
        self.stats = PipelineStats()

    @classmethod
    def from_settings(cls, settings: Settings, transport: TransportClient) -> "BridgePipeline":
        return cls(
            transport,
            expander=SeriesExpander(include_metadata=settings.send_metadata),
            skip_empty_push=settings.skip_empty_push,
        )

    async def run_cycle(self) -> CycleResult:
        """Run one cycle and return to idle, whatever the outcome."""
        start = time.perf_counter()
        result = CycleResult(success=False, stage=CycleState.SCRAPING)

        try:
            self.state = CycleState.SCRAPING
            body = await self.transport.scrape()

            self.state = result.stage = CycleState.ENCODING
            families = list(self.decoder.decode(body))
            result.families = len(families)

            batch = self.expander.build_batch(families, timestamp=self.clock())
            result.timeseries = len(batch)

            if batch.is_empty and self.skip_empty_push:
                result.success = result.skipped = True
                logger.info("empty_batch_skipped", families=result.families)
                return result

            payload = self.protocol.encode_write_request(batch)
            result.payload_bytes = len(payload)

            self.state = result.stage = CycleState.PUSHING
            await self.transport.push(payload)
            result.success = True

            logger.info(
                "cycle_completed",
                families=result.families,
                timeseries=result.timeseries,
                payload_bytes=result.payload_bytes,
            )
        except BridgeError as e:
            result.error = e
            log_error(logger, e, stage=result.stage.value, **e.context)
        finally:
            result.duration_seconds = time.perf_counter() - start
            self.state = CycleState.IDLE
            self._record(result)

        return result

    def _record(self, result: CycleResult) -> None:
        self.stats.cycles += 1
        if not result.success:
            self.stats.failures += 1
        if result.skipped:
            self.stats.skipped += 1
        self.stats.last_result = result
