"""Exception hierarchy for icmptrace."""

from __future__ import annotations

from typing import Optional


class TraceError(Exception):
    """Base class for every error raised by icmptrace."""


class AddressResolutionError(TraceError):
    """Raised when the trace target cannot be resolved to an IPv4 address."""

    def __init__(self, target: str, reason: Optional[str] = None):
        self.target = target
        message = f"Resolve error {target}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class HopError(TraceError):
    """A failure that ends the probing of a single hop."""


class SocketError(HopError):
    """The probing socket could not be opened, configured or used."""


class RawSocketPermissionError(SocketError, PermissionError):
    """Raised when raw socket creation fails due to missing privileges."""


class TransmissionSizeError(HopError):
    def __init__(self, sent: int, expected: int):
        self.sent = sent
        self.expected = expected
        super().__init__(f"got {sent}; want {expected}")


class ProbeTimeoutError(HopError, TimeoutError):
    """No reply arrived before the hop deadline."""


class ProtocolParseError(HopError, ValueError):
    """A received datagram is not a well formed IPv4/ICMP message."""


class UnexpectedICMPTypeError(HopError):
    """Replies decoded fine but were neither echo-reply nor time-exceeded."""

    def __init__(self, icmp_type: int, icmp_code: int = 0, peer: Optional[str] = None):
        self.icmp_type = icmp_type
        self.icmp_code = icmp_code
        self.peer = peer
        message = f"got ICMP type {icmp_type} code {icmp_code}"
        if peer:
            message += f" from {peer}"
        super().__init__(f"{message}; Invalid ICMPType")
