import socket
import struct

import pytest

from icmptrace._icmp import (
    ICMP_ECHO_REPLY,
    ICMP_ECHO_REQUEST,
    ICMP_TIME_EXCEEDED,
    build_echo,
    checksum,
)

IDENTIFIER = 0x1234
DESTINATION = "203.0.113.7"


def ip_header(src: str, dst: str = "192.0.2.10", payload_length: int = 0, ihl: int = 5) -> bytes:
    header = struct.pack(
        "!BBHHHBBH4s4s",
        (4 << 4) + ihl,
        0,
        ihl * 4 + payload_length,
        0,
        0,
        64,
        1,
        0,
        socket.inet_aton(src),
        socket.inet_aton(dst),
    )
    return header + b"\x00" * (ihl * 4 - 20)


def icmp_message(icmp_type: int, code: int = 0, rest: bytes = b"\x00" * 4, data: bytes = b"") -> bytes:
    header = struct.pack("!BBH", icmp_type, code, 0) + rest
    csum = checksum(header + data)
    return struct.pack("!BBH", icmp_type, code, csum) + rest + data


def echo_reply(src: str, identifier: int = IDENTIFIER, sequence: int = 1, payload: bytes = b"") -> bytes:
    rest = struct.pack("!HH", identifier, sequence)
    message = icmp_message(ICMP_ECHO_REPLY, rest=rest, data=payload)
    return ip_header(src, payload_length=len(message)) + message


def icmp_error(src: str, icmp_type: int = ICMP_TIME_EXCEEDED, code: int = 0, identifier: int = IDENTIFIER) -> bytes:
    probe = build_echo(ICMP_ECHO_REQUEST, 56, identifier=identifier)
    quoted = ip_header("192.0.2.10", DESTINATION, len(probe)) + probe[:8]
    message = icmp_message(icmp_type, code, data=quoted)
    return ip_header(src, payload_length=len(message)) + message


def time_exceeded(src: str, identifier: int = IDENTIFIER) -> bytes:
    return icmp_error(src, ICMP_TIME_EXCEEDED, identifier=identifier)


class FakeSocket:
    """Stand-in for a raw ICMP socket fed with scripted datagrams.

    Each entry of ``replies`` is either raw bytes returned by ``recvfrom`` or an
    exception instance raised from it.
    """

    def __init__(self, replies=(), short_write: bool = False, ttl_error: Exception = None):
        self.replies = list(replies)
        self.short_write = short_write
        self.ttl_error = ttl_error
        self.sent = []
        self.options = {}
        self.timeouts = []
        self.closed = False

    def setsockopt(self, level, option, value):
        if self.ttl_error is not None:
            raise self.ttl_error
        self.options[(level, option)] = value

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendto(self, data, address):
        self.sent.append((bytes(data), address))
        return len(data) - 1 if self.short_write else len(data)

    def recvfrom(self, size):
        if not self.replies:
            raise socket.timeout("timed out")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply, ("0.0.0.0", 0)

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 100.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_socket_factory():
    """Return a factory producing a prepared FakeSocket and remembering it."""

    created = []

    def make(replies=(), **kwargs):
        sock = FakeSocket(replies, **kwargs)

        def factory():
            created.append(sock)
            return sock

        factory.sock = sock
        factory.created = created
        return factory

    return make
