"""Rich renderers for bridge CLI output."""

import json
from typing import Any, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mimirbridge.bridge.models import METRIC_NAME_LABEL, Label, WriteBatch
from mimirbridge.bridge.pipeline import CycleResult, PipelineStats
from mimirbridge.bridge.protocol import PrometheusRemoteWrite
from mimirbridge.config import Settings

console = Console()
console_err = Console(stderr=True)


def print_error(message: str) -> None:
    console_err.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")


def format_series(labels: Iterable[Label]) -> str:
    """Render labels in selector form, e.g. ``http_requests_total{code="200"}``."""
    name = ""
    rest = []
    for label in labels:
        if label.name == METRIC_NAME_LABEL:
            name = label.value
        else:
            rest.append(f'{label.name}="{label.value}"')
    return f"{name}{{{','.join(rest)}}}" if rest else name


def print_startup(settings: Settings) -> None:
    print_info("Starting Prometheus -> Mimir bridge")
    print_info(f"   Scraping from: {settings.scrape_url}")
    print_info(f"   Pushing to: {settings.push_url}")
    if settings.tenant_id:
        print_info(f"   Tenant: {settings.tenant_id}")
    print_info(f"   Interval: {settings.scrape_interval_seconds}s")


def print_cycle_result(result: CycleResult, push_url: str) -> None:
    """Print the outcome of a single cycle.

    Failures go to stderr with the stage that failed; the push response body
    is part of the error message.
    """
    if not result.success:
        print_error(f"Cycle failed during {result.stage.value}: {result.error}")
        return

    if result.skipped:
        print_warning("Batch was empty; push skipped")
    else:
        console.print(f"[green]✓[/green] Pushed metrics to {push_url}")

    table = Table(title="Cycle", show_header=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Families", str(result.families))
    table.add_row("Time Series", str(result.timeseries))
    table.add_row("Payload", f"{result.payload_bytes} bytes")
    table.add_row("Duration", f"{result.duration_seconds * 1000:.1f}ms")
    console.print(table)


def print_bridge_summary(stats: PipelineStats) -> None:
    table = Table(title="Bridge Summary", show_header=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Cycles", str(stats.cycles))
    table.add_row("Failed", f"[red]{stats.failures}[/red]" if stats.failures else "0")
    table.add_row("Skipped (empty)", str(stats.skipped))
    console.print(table)


def print_series_table(batch: WriteBatch, limit: int, source: str) -> None:
    """Print the series of ``batch`` as a table, at most ``limit`` rows (0 = all)."""
    series = batch.timeseries if limit == 0 else batch.timeseries[:limit]
    if not series:
        console.print("[yellow]No series scraped[/yellow]")
        return

    table = Table(
        title=f"Time series from {source}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Series", style="white", no_wrap=False)
    table.add_column("Value", style="green", justify="right")

    for ts in series:
        table.add_row(format_series(ts.labels), str(ts.samples[0].value))

    console.print(table)
    if len(series) < len(batch):
        print_info(f"Showing {len(series)} of {len(batch)} series")


def print_batch_json(batch: WriteBatch, limit: int) -> None:
    """Print ``batch`` with its statistics as JSON, at most ``limit`` series (0 = all)."""
    series = batch.timeseries if limit == 0 else batch.timeseries[:limit]
    data = {
        "timestamp": batch.timestamp,
        "statistics": PrometheusRemoteWrite.get_statistics(batch),
        "timeseries": [
            {"labels": ts.label_dict(), "value": ts.samples[0].value} for ts in series
        ],
    }
    console.print_json(json.dumps(data, indent=2))


def print_config_tables(config_dict: dict[str, dict[str, Any]]) -> None:
    """Print one table per configuration section."""
    console.print()
    console.print(Panel("Mimir Bridge Configuration", border_style="cyan"))
    console.print()

    for section_name, values in config_dict.items():
        table = Table(
            title=f"{section_name.capitalize()} Settings",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")

        for key, value in values.items():
            table.add_row(key, "Not configured" if value is None else str(value))

        console.print(table)
        console.print()
