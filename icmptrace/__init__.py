from ._config import TraceConfig
from ._exceptions import (
    AddressResolutionError,
    HopError,
    ProbeTimeoutError,
    ProtocolParseError,
    RawSocketPermissionError,
    SocketError,
    TraceError,
    TransmissionSizeError,
    UnexpectedICMPTypeError,
)
from ._exchange import Deadline, ProbeExchange, exchange, open_icmp_socket
from ._icmp import IcmpPacket, IpHeader, build_echo, console, logger, parse_reply
from ._models import (
    HopStatus,
    ProbeAttempt,
    ProbeOutcome,
    ReplyKind,
    TracerouteResult,
    TraceState,
    aggregate_status,
)
from ._peers import reverse_lookup, summarize
from ._traceroute import format_hop, resolve_destination, trace_route, traceroute

__all__ = [
    "TraceConfig",
    "TraceError",
    "AddressResolutionError",
    "HopError",
    "SocketError",
    "RawSocketPermissionError",
    "TransmissionSizeError",
    "ProbeTimeoutError",
    "ProtocolParseError",
    "UnexpectedICMPTypeError",
    "Deadline",
    "ProbeExchange",
    "exchange",
    "open_icmp_socket",
    "IcmpPacket",
    "IpHeader",
    "build_echo",
    "parse_reply",
    "console",
    "logger",
    "HopStatus",
    "ProbeAttempt",
    "ProbeOutcome",
    "ReplyKind",
    "TracerouteResult",
    "TraceState",
    "aggregate_status",
    "reverse_lookup",
    "summarize",
    "format_hop",
    "resolve_destination",
    "trace_route",
    "traceroute",
]
