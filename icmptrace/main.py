"""Command line driver for icmptrace."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from ._config import (
    DEFAULT_ATTEMPTS,
    DEFAULT_MAX_TTL,
    DEFAULT_PAYLOAD_SIZE,
    DEFAULT_TIMEOUT,
    TraceConfig,
)
from ._icmp import console, setup_logging
from ._traceroute import traceroute


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icmptrace",
        description="Trace the route to a host with ICMP echo requests",
    )
    parser.add_argument("target", help="target hostname or IPv4 address")
    parser.add_argument(
        "-m",
        "--max-ttl",
        type=int,
        default=DEFAULT_MAX_TTL,
        help="highest TTL to probe",
    )
    parser.add_argument(
        "-q",
        "--attempts",
        type=int,
        default=DEFAULT_ATTEMPTS,
        help="probes sent per hop",
    )
    parser.add_argument(
        "-w",
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="seconds to wait for all probes of a hop",
    )
    parser.add_argument(
        "-s",
        "--size",
        type=int,
        default=DEFAULT_PAYLOAD_SIZE,
        help="echo payload size in bytes",
    )
    parser.add_argument(
        "-n",
        "--no-dns",
        action="store_true",
        help="skip reverse DNS lookups",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="log progress (-vv adds packet dumps)",
    )
    parser.add_argument(
        "--tui",
        action="store_true",
        help="open the interactive interface instead of printing lines",
    )
    return parser


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv``, run one trace and return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    levels = {0: logging.WARNING, 1: logging.INFO}
    setup_logging(levels.get(args.verbose, logging.DEBUG))

    try:
        config = TraceConfig(
            max_ttl=args.max_ttl,
            attempts=args.attempts,
            timeout=args.timeout,
            payload_size=args.size,
            resolve_dns=not args.no_dns,
        )
    except ValueError as exc:
        parser.error(str(exc))

    if args.tui:
        from .tui import TracerouteApp

        TracerouteApp(target=args.target, config=config).run()
        return 0

    result = traceroute(args.target, config, console=console)
    return 0 if result.reached else 1


if __name__ == "__main__":
    raise SystemExit(run())
