import io
import socket

import pytest
from rich.console import Console

from icmptrace import (
    AddressResolutionError,
    HopStatus,
    ProbeAttempt,
    ProbeOutcome,
    ProbeTimeoutError,
    RawSocketPermissionError,
    ReplyKind,
    TraceConfig,
    TraceState,
    format_hop,
    resolve_destination,
    trace_route,
    traceroute,
)
from icmptrace._icmp import ICMP_ECHO_REPLY, ICMP_TIME_EXCEEDED, parse_reply
from icmptrace._traceroute import format_durations


def hop(ttl, kind, responder, error=None):
    icmp_type = ICMP_ECHO_REPLY if kind is ReplyKind.ECHO_REPLY else ICMP_TIME_EXCEEDED
    attempts = [ProbeAttempt(rtt=1.0 * n, responder=responder, kind=kind, icmp_type=icmp_type) for n in (1, 2, 3)]
    return ProbeOutcome.from_attempts(ttl, attempts, error=error)


class ScriptedProbe:
    """Answers hops from a script keyed by TTL; unknown TTLs exceed."""

    def __init__(self, reached_at=None, errors=None):
        self.reached_at = reached_at
        self.errors = errors or {}
        self.calls = []

    def __call__(self, destination, packet, ttl, attempts, timeout, identifier=None):
        self.calls.append((destination, packet, ttl, attempts, timeout, identifier))
        if ttl in self.errors:
            return ProbeOutcome.from_attempts(ttl, [], error=self.errors[ttl])
        if ttl == self.reached_at:
            return hop(ttl, ReplyKind.ECHO_REPLY, destination)
        return hop(ttl, ReplyKind.TIME_EXCEEDED, f"10.0.0.{ttl}")


def make_console():
    return Console(file=io.StringIO(), width=200, color_system=None)


def no_names(address):
    return []


def test_trace_route_stops_at_first_reached():
    probe = ScriptedProbe(reached_at=4)
    outcomes = list(trace_route("203.0.113.7", TraceConfig(identifier=99), probe=probe))

    assert [o.ttl for o in outcomes] == [1, 2, 3, 4]
    assert outcomes[-1].status is HopStatus.REACHED
    assert [call[2] for call in probe.calls] == [1, 2, 3, 4]


def test_trace_route_reached_at_first_hop():
    probe = ScriptedProbe(reached_at=1)
    outcomes = list(trace_route("203.0.113.7", TraceConfig(), probe=probe))

    assert len(outcomes) == 1
    assert outcomes[0].reached


def test_trace_route_never_exceeds_max_ttl():
    probe = ScriptedProbe()
    outcomes = list(trace_route("203.0.113.7", TraceConfig(max_ttl=64), probe=probe))

    ttls = [call[2] for call in probe.calls]
    assert ttls == list(range(1, 65))
    assert all(o.status is HopStatus.TTL_EXCEEDED for o in outcomes)


def test_trace_route_is_lazy():
    probe = ScriptedProbe()
    walk = trace_route("203.0.113.7", TraceConfig(), probe=probe)

    assert probe.calls == []
    next(walk)
    assert len(probe.calls) == 1


def test_trace_route_passes_packet_and_config():
    probe = ScriptedProbe(reached_at=1)
    config = TraceConfig(attempts=5, timeout=2.5, payload_size=20, identifier=0xBEEF)
    list(trace_route("203.0.113.7", config, probe=probe))

    destination, packet, ttl, attempts, timeout, identifier = probe.calls[0]
    assert destination == "203.0.113.7"
    assert len(packet) == 28
    assert parse_reply(packet).id == 0xBEEF
    assert (attempts, timeout, identifier) == (5, 2.5, 0xBEEF)


def test_trace_route_without_identifier_matching():
    probe = ScriptedProbe(reached_at=1)
    list(trace_route("203.0.113.7", TraceConfig(match_identifier=False), probe=probe))
    assert probe.calls[0][5] is None


def test_trace_route_continues_after_hop_error():
    probe = ScriptedProbe(reached_at=3, errors={2: ProbeTimeoutError("no reply")})
    outcomes = list(trace_route("203.0.113.7", TraceConfig(), probe=probe))

    assert [o.status for o in outcomes] == [
        HopStatus.TTL_EXCEEDED,
        HopStatus.ERROR,
        HopStatus.REACHED,
    ]


def test_trace_route_stops_without_privileges():
    probe = ScriptedProbe(errors={1: RawSocketPermissionError("need root")})
    outcomes = list(trace_route("203.0.113.7", TraceConfig(), probe=probe))

    assert len(outcomes) == 1
    assert len(probe.calls) == 1


def test_format_durations():
    assert format_durations([1.0, 2.25]) == "[1.000ms 2.250ms]"
    assert format_durations([]) == "[]"


def test_format_hop_lines():
    exceeded = format_hop(hop(2, ReplyKind.TIME_EXCEEDED, "10.0.0.2"), no_names)
    reached = format_hop(hop(9, ReplyKind.ECHO_REPLY, "203.0.113.7"), lambda a: ["dest.example."])
    failed = format_hop(ProbeOutcome.from_attempts(3, [], error=ProbeTimeoutError("no reply")))

    assert exceeded == "  2 [1.000ms 2.000ms 3.000ms]  TTLExc at [10.0.0.2]"
    assert reached == "  9 [1.000ms 2.000ms 3.000ms]    Reached [203.0.113.7 (dest.example.)]"
    assert failed == "  3 ERROR: no reply"


def test_resolve_destination_passes_literals_through(monkeypatch):
    def fail(name):
        raise AssertionError("literal must not be resolved")

    monkeypatch.setattr(socket, "gethostbyname", fail)
    assert resolve_destination("192.0.2.1") == "192.0.2.1"


def test_resolve_destination_uses_dns(monkeypatch):
    monkeypatch.setattr(socket, "gethostbyname", lambda name: "198.51.100.20")
    assert resolve_destination("example.test") == "198.51.100.20"


def test_resolve_destination_failure(monkeypatch):
    def fail(name):
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(socket, "gethostbyname", fail)
    with pytest.raises(AddressResolutionError) as excinfo:
        resolve_destination("999.1.2.3")
    assert excinfo.value.target == "999.1.2.3"


def test_traceroute_reached():
    console = make_console()
    probe = ScriptedProbe(reached_at=3)
    seen = []

    result = traceroute(
        "203.0.113.7",
        TraceConfig(),
        console=console,
        lookup=no_names,
        probe=probe,
        on_hop=lambda outcome, line: seen.append(outcome.ttl),
    )

    assert result.state is TraceState.REACHED
    assert result.reached
    assert result.resolved == "203.0.113.7"
    assert seen == [1, 2, 3]
    output = console.file.getvalue().splitlines()
    assert output[0] == "Tracing route to 203.0.113.7 (203.0.113.7) with MaxTTL = 64"
    assert "TTLExc at [10.0.0.1]" in output[1]
    assert "Reached [203.0.113.7]" in output[3]
    assert output[-1] == "Reached 203.0.113.7 at hop 3"
    assert str(result).splitlines() == output


def test_traceroute_exhausted_prints_one_line_per_hop():
    console = make_console()
    result = traceroute(
        "203.0.113.7",
        TraceConfig(max_ttl=64),
        console=console,
        lookup=no_names,
        probe=ScriptedProbe(),
    )

    lines = console.file.getvalue().splitlines()
    assert result.state is TraceState.EXHAUSTED
    assert len(result.hops) == 64
    assert len(lines) == 1 + 64 + 1
    assert not any("Reached [" in line for line in lines)
    assert lines[-1] == "Destination 203.0.113.7 not reached within 64 hops"


def test_traceroute_reports_hop_errors_and_continues():
    console = make_console()
    probe = ScriptedProbe(reached_at=2, errors={1: ProbeTimeoutError("no reply within 10s")})
    result = traceroute("203.0.113.7", console=console, lookup=no_names, probe=probe)

    lines = console.file.getvalue().splitlines()
    assert lines[1] == "  1 ERROR: no reply within 10s"
    assert result.state is TraceState.REACHED


def test_traceroute_aborted_without_privileges():
    console = make_console()
    probe = ScriptedProbe(errors={1: RawSocketPermissionError("need root")})
    result = traceroute("203.0.113.7", console=console, lookup=no_names, probe=probe)

    assert result.state is TraceState.ABORTED
    assert result.error == "need root"
    assert console.file.getvalue().splitlines()[-1] == "Trace aborted at hop 1"


def test_traceroute_unresolvable_target(monkeypatch):
    def fail(name):
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(socket, "gethostbyname", fail)
    console = make_console()
    probe = ScriptedProbe()

    result = traceroute("no-such-host.invalid", console=console, probe=probe)

    assert result.state is TraceState.UNRESOLVED
    assert result.hops == []
    assert probe.calls == []
    lines = console.file.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("ERROR: Resolve error no-such-host.invalid")


def test_traceroute_no_dns_skips_lookup():
    console = make_console()

    def lookup(address):
        raise AssertionError("lookup must not run")

    traceroute(
        "203.0.113.7",
        TraceConfig(resolve_dns=False),
        console=console,
        lookup=lookup,
        probe=ScriptedProbe(reached_at=1),
    )
