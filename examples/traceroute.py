"""Trace a route and render the hops as a Rich table."""

from __future__ import annotations

import argparse

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from icmptrace import (
    AddressResolutionError,
    HopStatus,
    ProbeOutcome,
    TraceConfig,
    resolve_destination,
    summarize,
    trace_route,
)

console = Console()


def _build_table(host: str, resolved: str, hops: list[ProbeOutcome]) -> Table:
    title_suffix = f" ({resolved})" if resolved != host else ""
    table = Table(title=f"Traceroute to {host}{title_suffix}", box=box.SQUARE, expand=True)
    table.add_column("Hop", justify="right", style="cyan", no_wrap=True)
    table.add_column("Status", style="yellow")
    table.add_column("Peers", style="magenta")
    table.add_column("RTTs (ms)", justify="right")

    for outcome in hops:
        if outcome.status is HopStatus.ERROR:
            table.add_row(str(outcome.ttl), "error", Text(str(outcome.error)), "-")
            continue
        status = "reached" if outcome.reached else "ttl exceeded"
        rtts = " ".join(f"{rtt:.2f}" for rtt in outcome.durations)
        table.add_row(str(outcome.ttl), status, Text(summarize(outcome.responders)), rtts)
    return table


def main() -> None:
    parser = argparse.ArgumentParser(description="Traceroute rendered as a table")
    parser.add_argument("host", nargs="?", default="8.8.8.8", help="target host")
    parser.add_argument("-m", "--max-ttl", type=int, default=30, help="max hop TTL")
    parser.add_argument("-w", "--timeout", type=float, default=2.0, help="per hop timeout")
    args = parser.parse_args()

    try:
        resolved = resolve_destination(args.host)
    except AddressResolutionError as exc:
        console.print(f"[red]{exc}[/red]")
        return

    config = TraceConfig(max_ttl=args.max_ttl, timeout=args.timeout)
    hops: list[ProbeOutcome] = []
    with console.status(f"Tracing {args.host}..."):
        for outcome in trace_route(resolved, config):
            hops.append(outcome)
    console.print(_build_table(args.host, resolved, hops))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
