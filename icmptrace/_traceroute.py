"""Traceroute helper functionality."""

from __future__ import annotations

import socket
from typing import Callable, Iterator, Optional, Sequence

from rich.console import Console

from ._config import TraceConfig
from ._exceptions import AddressResolutionError, RawSocketPermissionError
from ._exchange import exchange
from ._icmp import ICMP_ECHO_REQUEST, build_echo, console as default_console, logger
from ._models import HopStatus, ProbeOutcome, TracerouteResult, TraceState
from ._peers import ReverseLookup, reverse_lookup, summarize

ProbeFunc = Callable[..., ProbeOutcome]


def _valid_ip(host: str) -> bool:
    try:
        socket.inet_pton(socket.AF_INET, host)
        return True
    except OSError:
        return False


def resolve_destination(target: str) -> str:
    """Resolve ``target`` to a dotted-quad IPv4 address."""
    if _valid_ip(target):
        return target
    try:
        return socket.gethostbyname(target)
    except (OSError, UnicodeError) as exc:
        raise AddressResolutionError(target, str(exc)) from exc


def trace_route(
    destination: str,
    config: Optional[TraceConfig] = None,
    *,
    probe: ProbeFunc = exchange,
) -> Iterator[ProbeOutcome]:
    """Probe TTL 1..``config.max_ttl`` in order, one hop at a time.

    Outcomes are yielded as soon as each hop finishes. The walk ends right
    after the first hop that reached ``destination``. A hop that failed is
    yielded as an error and the walk moves on to the next TTL, unless the
    socket could not be opened for lack of privileges.
    """
    config = config or TraceConfig()
    packet = build_echo(
        ICMP_ECHO_REQUEST, config.payload_size, identifier=config.identifier
    )
    for ttl in range(1, config.max_ttl + 1):
        logger.info("TTL %d", ttl)
        outcome = probe(
            destination,
            packet,
            ttl,
            config.attempts,
            config.timeout,
            identifier=config.identifier if config.match_identifier else None,
        )
        yield outcome
        if outcome.reached:
            return
        if isinstance(outcome.error, RawSocketPermissionError):
            return


def format_durations(durations: Sequence[float]) -> str:
    return "[" + " ".join(f"{rtt:.3f}ms" for rtt in durations) + "]"


def format_hop(outcome: ProbeOutcome, lookup: Optional[ReverseLookup] = None) -> str:
    """Render one hop as ``<ttl> <durations> <status> <peers>``."""
    if outcome.status is HopStatus.ERROR:
        return f"{outcome.ttl:3d} ERROR: {outcome.error}"

    if lookup is None:
        peers = summarize(outcome.responders, lookup=lambda address: [])
    else:
        peers = summarize(outcome.responders, lookup=lookup)
    status = "   Reached" if outcome.reached else " TTLExc at"
    return f"{outcome.ttl:3d} {format_durations(outcome.durations):>10s} {status} {peers}"


def traceroute(
    dest_addr: str,
    config: Optional[TraceConfig] = None,
    *,
    console: Optional[Console] = None,
    lookup: ReverseLookup = reverse_lookup,
    probe: ProbeFunc = exchange,
    on_hop: Optional[Callable[[ProbeOutcome, str], None]] = None,
) -> TracerouteResult:
    """Resolve ``dest_addr`` once, walk the route and print one line per hop."""
    config = config or TraceConfig()
    out = console or default_console
    result = TracerouteResult(target=dest_addr, resolved=None, max_ttl=config.max_ttl)

    def emit(line: str) -> None:
        result.lines.append(line)
        out.print(line, markup=False, highlight=False)

    try:
        resolved = resolve_destination(dest_addr)
    except AddressResolutionError as exc:
        logger.debug("Resolution failed: %s", exc)
        result.state = TraceState.UNRESOLVED
        result.error = str(exc)
        emit(f"ERROR: {exc}")
        return result

    result.resolved = resolved
    logger.info(
        "Starting traceroute to %s (%s) max_ttl=%d attempts=%d",
        dest_addr,
        resolved,
        config.max_ttl,
        config.attempts,
    )
    emit(f"Tracing route to {dest_addr} ({resolved}) with MaxTTL = {config.max_ttl}")

    for outcome in trace_route(resolved, config, probe=probe):
        result.hops.append(outcome)
        line = format_hop(outcome, lookup if config.resolve_dns else None)
        emit(line)
        if outcome.error is not None:
            logger.debug("TTL %d: %s", outcome.ttl, outcome.error)
        if on_hop is not None:
            on_hop(outcome, line)

    last = result.hops[-1] if result.hops else None
    if last is not None and last.reached:
        result.state = TraceState.REACHED
        logger.info("Destination reached at TTL %d", last.ttl)
        emit(f"Reached {resolved} at hop {last.ttl}")
    elif last is not None and isinstance(last.error, RawSocketPermissionError):
        result.state = TraceState.ABORTED
        result.error = str(last.error)
        emit(f"Trace aborted at hop {last.ttl}")
    else:
        result.state = TraceState.EXHAUSTED
        logger.info("Traceroute finished without reaching destination")
        emit(f"Destination {resolved} not reached within {config.max_ttl} hops")
    return result
