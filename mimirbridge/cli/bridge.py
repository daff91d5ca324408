"""Bridge commands: periodic run, single cycle, and inspection."""

import asyncio
import contextlib
import signal
from typing import Optional

import typer

from mimirbridge.bridge import (
    BridgePipeline,
    CycleResult,
    ExpositionDecoder,
    PeriodicScheduler,
    SeriesExpander,
    TransportClient,
)
from mimirbridge.bridge.models import WriteBatch
from mimirbridge.bridge.pipeline import PipelineStats
from mimirbridge.cli.main import handle_error, state
from mimirbridge.cli.output import (
    print_batch_json,
    print_bridge_summary,
    print_cycle_result,
    print_error,
    print_series_table,
    print_startup,
    print_warning,
)
from mimirbridge.config import Settings
from mimirbridge.exceptions import BridgeError
from mimirbridge.logging_config import get_logger

logger = get_logger(__name__)


def build_transport(settings: Settings) -> TransportClient:
    return TransportClient(
        scrape_url=settings.scrape_url,
        push_url=settings.push_url,
        timeout=settings.http_timeout_seconds,
        tenant_id=settings.tenant_id,
        auth=settings.push_auth,
    )


async def run_bridge(settings: Settings, cycles: Optional[int] = None) -> PipelineStats:
    """Run cycles on the configured interval until SIGINT/SIGTERM or ``cycles`` is reached."""
    scheduler = PeriodicScheduler(settings.scrape_interval_seconds, max_cycles=cycles)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, scheduler.stop)

    async with build_transport(settings) as transport:
        pipeline = BridgePipeline.from_settings(settings, transport)
        await scheduler.run(pipeline.run_cycle)

    return pipeline.stats


async def run_once(settings: Settings) -> CycleResult:
    async with build_transport(settings) as transport:
        pipeline = BridgePipeline.from_settings(settings, transport)
        return await pipeline.run_cycle()


async def scrape_batch(settings: Settings) -> WriteBatch:
    """Scrape, decode and expand without pushing."""
    async with build_transport(settings) as transport:
        body = await transport.scrape()

    families = list(ExpositionDecoder().decode(body))
    return SeriesExpander(include_metadata=settings.send_metadata).build_batch(families)


def run(
    cycles: Optional[int] = typer.Option(
        None,
        "--cycles",
        "-n",
        help="Stop after this many cycles (default: run until interrupted)",
        min=1,
    ),
) -> None:
    """
    Run the bridge on the configured interval.

    The first cycle starts immediately. Failed cycles are logged and the bridge
    keeps going; stop it with Ctrl+C or SIGTERM.

    Examples:
        mimirbridge run

        SCRAPE_URL=http://app:8080/metrics mimirbridge run --cycles 3
    """
    settings = state.settings

    print_startup(settings)

    try:
        stats = asyncio.run(run_bridge(settings, cycles))
    except KeyboardInterrupt:
        print_warning("Interrupted")
        raise typer.Exit(1)

    print_bridge_summary(stats)


def once() -> None:
    """
    Run a single scrape-push cycle.

    Exits with status 1 when the cycle fails.
    """
    settings = state.settings
    result = asyncio.run(run_once(settings))

    print_cycle_result(result, settings.push_url)
    if not result.success:
        raise typer.Exit(1)


def inspect(
    limit: int = typer.Option(
        50,
        "--limit",
        "-l",
        help="Maximum number of series to display (0 = all)",
        min=0,
    ),
    output: str = typer.Option(
        "table",
        "--output",
        "-o",
        help="Output format: table, json",
    ),
) -> None:
    """
    Scrape and expand metrics without pushing them.

    Shows the time series the next cycle would push.
    """
    if output not in ("table", "json"):
        print_error(f"Invalid output format: {output}")
        raise typer.Exit(1)

    settings = state.settings
    try:
        batch = asyncio.run(scrape_batch(settings))
    except BridgeError as e:
        handle_error(e)

    if output == "json":
        print_batch_json(batch, limit)
    else:
        print_series_table(batch, limit, settings.scrape_url)
