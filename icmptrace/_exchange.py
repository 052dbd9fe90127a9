"""Single-hop probing over a raw ICMP socket."""

from __future__ import annotations

import socket
import time
from contextlib import closing
from typing import Callable, Optional

from ._exceptions import (
    HopError,
    ProbeTimeoutError,
    RawSocketPermissionError,
    SocketError,
    TransmissionSizeError,
)
from ._icmp import (
    ICMP_ECHO_REPLY,
    IcmpPacket,
    IpHeader,
    embedded_probe,
    hexdump,
    logger,
    parse_reply,
    strip_ip_header,
)
from ._models import ProbeAttempt, ProbeOutcome, ReplyKind

RECV_BUFFER_SIZE = 1500

Clock = Callable[[], float]


class Deadline:
    """A point in time shared by every attempt of one hop.

    It is created once per hop and never reset, so a slow first attempt eats
    into the time left for the following ones.
    """

    def __init__(self, timeout: float, clock: Clock = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self.expires_at = clock() + timeout

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


def open_icmp_socket() -> socket.socket:
    """Open a raw ICMP socket bound to the wildcard address."""
    try:
        sock = socket.socket(
            socket.AF_INET,
            socket.SOCK_RAW,
            socket.getprotobyname("icmp"),
        )
    except PermissionError as exc:
        message = (
            "Raw socket requires elevated privileges. Use sudo or grant "
            "CAP_NET_RAW to the Python interpreter."
        )
        raise RawSocketPermissionError(message) from exc
    except OSError as exc:
        raise SocketError(f"cannot open raw ICMP socket: {exc}") from exc

    try:
        sock.bind(("0.0.0.0", 0))
    except OSError as exc:
        sock.close()
        raise SocketError(f"cannot bind raw ICMP socket: {exc}") from exc
    return sock


def _matches_probe(identifier: int, packet: IcmpPacket) -> bool:
    if packet.type == ICMP_ECHO_REPLY:
        return packet.id == identifier
    inner = embedded_probe(packet)
    return inner is not None and inner.id == identifier


class ProbeExchange:
    """Runs the send/receive attempts of one hop on its own socket."""

    def __init__(
        self,
        destination: str,
        packet: bytes,
        ttl: int,
        *,
        identifier: Optional[int] = None,
        socket_factory: Callable[[], socket.socket] = open_icmp_socket,
        clock: Clock = time.perf_counter,
    ):
        self.destination = destination
        self.packet = packet
        self.ttl = ttl
        self.identifier = identifier
        self.socket_factory = socket_factory
        self.clock = clock

    def run(self, attempts: int, deadline: Deadline) -> ProbeOutcome:
        collected: list[ProbeAttempt] = []
        try:
            with closing(self.socket_factory()) as sock:
                self._set_ttl(sock)
                for index in range(1, attempts + 1):
                    attempt = self._attempt(sock, deadline)
                    logger.debug(
                        "ttl %d probe %d: %s from %s rtt=%.2f ms",
                        self.ttl,
                        index,
                        attempt.kind.value,
                        attempt.responder,
                        attempt.rtt,
                    )
                    collected.append(attempt)
        except HopError as exc:
            logger.debug("ttl %d aborted after %d attempts: %s", self.ttl, len(collected), exc)
            return ProbeOutcome.from_attempts(self.ttl, collected, error=exc)
        return ProbeOutcome.from_attempts(self.ttl, collected)

    def _set_ttl(self, sock: socket.socket) -> None:
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, self.ttl)
        except OSError as exc:
            raise SocketError(f"cannot set TTL {self.ttl}: {exc}") from exc

    def _attempt(self, sock: socket.socket, deadline: Deadline) -> ProbeAttempt:
        start = self.clock()
        self._send(sock)
        header, packet = self._receive(sock, deadline)
        rtt = (self.clock() - start) * 1000
        return ProbeAttempt(
            rtt=rtt,
            responder=header.src_addr,
            kind=ReplyKind.classify(packet.type),
            icmp_type=packet.type,
            icmp_code=packet.code,
        )

    def _send(self, sock: socket.socket) -> None:
        hexdump("Sending", self.packet)
        try:
            sent = sock.sendto(self.packet, (self.destination, 1))
        except OSError as exc:
            raise SocketError(f"send to {self.destination} failed: {exc}") from exc
        if sent != len(self.packet):
            raise TransmissionSizeError(sent, len(self.packet))

    def _receive(
        self, sock: socket.socket, deadline: Deadline
    ) -> tuple[IpHeader, IcmpPacket]:
        while True:
            remaining = deadline.remaining()
            if remaining <= 0:
                raise ProbeTimeoutError(
                    f"no reply from {self.destination} within {deadline.timeout:g}s"
                )
            try:
                sock.settimeout(remaining)
                raw, _ = sock.recvfrom(RECV_BUFFER_SIZE)
            except socket.timeout as exc:
                raise ProbeTimeoutError(
                    f"no reply from {self.destination} within {deadline.timeout:g}s"
                ) from exc
            except OSError as exc:
                raise SocketError(f"receive failed: {exc}") from exc

            hexdump("Received", raw)
            header, message = strip_ip_header(raw)
            packet = parse_reply(message)
            if self.identifier is not None and not _matches_probe(
                self.identifier, packet
            ):
                logger.debug(
                    "Ignoring ICMP type %d from %s", packet.type, header.src_addr
                )
                continue
            return header, packet


def exchange(
    destination: str,
    packet: bytes,
    ttl: int,
    attempts: int,
    timeout: float,
    *,
    identifier: Optional[int] = None,
    socket_factory: Callable[[], socket.socket] = open_icmp_socket,
    clock: Clock = time.perf_counter,
    deadline: Optional[Deadline] = None,
) -> ProbeOutcome:
    """Probe one hop ``attempts`` times and aggregate the replies.

    Every attempt shares a single deadline of ``timeout`` seconds. Hop level
    failures are not raised; they end the attempt loop and are reported on
    the returned outcome.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")
    if deadline is None:
        deadline = Deadline(timeout)
    probe = ProbeExchange(
        destination,
        packet,
        ttl,
        identifier=identifier,
        socket_factory=socket_factory,
        clock=clock,
    )
    return probe.run(attempts, deadline)
