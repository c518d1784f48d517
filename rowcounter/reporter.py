from __future__ import annotations

from typing import Any, Dict

from rich import box
from rich.console import Console
from rich.table import Table


def _fmt_bytes(value: Any) -> str:
    if not value:
        return "N/A"
    return f"{value / (1024 * 1024):.2f} MB"


def print_summary(summary: Dict[str, Any]) -> None:
    """
    Render a workload summary as a rich table.

    The verdict row is green when the final read lies within the acknowledged
    bounds and red otherwise.
    """
    console = Console()

    if not summary:
        console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(
        title=f"Counter workload: {summary.get('variant', 'unknown')}",
        box=box.ROUNDED,
        caption="info = indeterminate (may or may not have applied)",
    )
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="magenta")

    adds = summary.get("adds", {})
    reads = summary.get("reads", {})
    table.add_row("Workers", f"{summary.get('workers', 0)} ({summary.get('failed_workers', 0)} failed)")
    table.add_row("Operations", f"{summary.get('operations', 0):,}")
    table.add_row("Adds ok / fail / info", f"{adds.get('ok', 0)} / {adds.get('fail', 0)} / {adds.get('info', 0)}")
    table.add_row("Reads ok / fail", f"{reads.get('ok', 0)} / {reads.get('fail', 0)}")
    table.add_row("Aggregator", str(summary.get("aggregator") if summary.get("aggregator") is not None else "-"))
    table.add_row("Rows remaining", str(summary.get("rows_remaining", "N/A")))
    table.add_row("Bounds", f"[{summary.get('lower_bound')}, {summary.get('upper_bound')}]")
    table.add_row("Final value", str(summary.get("final_value")))
    table.add_row("Duration (s)", f"{summary.get('duration_seconds', 0.0):.2f}")
    table.add_row("Throughput (ops/s)", f"{summary.get('throughput_ops_per_sec', 0.0):,.2f}")
    table.add_row("Peak Memory", _fmt_bytes(summary.get("peak_rss_bytes")))
    cpu = summary.get("cpu_percent")
    table.add_row("CPU %", f"{cpu:.1f}" if cpu is not None else "N/A")

    verdict = summary.get("within_bounds")
    table.add_row(
        "Verdict",
        "[bold green]within bounds[/bold green]" if verdict else "[bold red]out of bounds[/bold red]",
    )

    console.print(table)
