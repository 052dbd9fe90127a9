from __future__ import annotations

import logging
import socket
import struct
from dataclasses import dataclass
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from ._exceptions import ProtocolParseError

ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACHABLE = 3
ICMP_SOURCE_QUENCH = 4
ICMP_REDIRECT = 5
ICMP_ECHO_REQUEST = 8
ICMP_TIME_EXCEEDED = 11
ICMP_PARAMETER_PROBLEM = 12

# ICMP messages that quote the header of the datagram that triggered them.
ICMP_ERROR_TYPES = frozenset(
    {
        ICMP_DEST_UNREACHABLE,
        ICMP_SOURCE_QUENCH,
        ICMP_REDIRECT,
        ICMP_TIME_EXCEEDED,
        ICMP_PARAMETER_PROBLEM,
    }
)

ICMP_HEADER_LENGTH = 8
IP_HEADER_MIN_LENGTH = 20
PAYLOAD_PATTERN = b"iXasthurICMP!"


# ------------- Logger configuravel
console = Console()
logger = logging.getLogger("icmptrace")


def setup_logging(level: Union[int, str] = logging.WARNING) -> logging.Logger:
    """Route the package logger through a :class:`RichHandler` on ``console``."""
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            markup=False,
            show_time=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


@dataclass(frozen=True)
class IcmpPacket:
    type: int
    code: int
    checksum: int
    id: int
    sequence: int
    data: bytes


@dataclass(frozen=True)
class IpHeader:
    version: int
    ihl: int
    tos: int
    total_length: int
    id: int
    flags: int
    fragment_offset: int
    ttl: int
    protocol: int
    checksum: int
    src_addr: str
    dest_addr: str

    @property
    def length(self) -> int:
        return self.ihl * 4


def checksum(data: bytes) -> int:
    """RFC 1071 internet checksum."""
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack("!%dH" % (len(data) // 2), data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def build_payload(size: int) -> bytes:
    if size < 0:
        raise ValueError(f"payload size must be >= 0, got {size}")
    repeats, remainder = divmod(size, len(PAYLOAD_PATTERN))
    return PAYLOAD_PATTERN * repeats + PAYLOAD_PATTERN[:remainder]


def build_echo(
    icmp_type: int = ICMP_ECHO_REQUEST,
    payload_size: int = 56,
    *,
    identifier: int,
    sequence: int = 1,
) -> bytes:
    """Build an ICMP echo message with a filler payload of ``payload_size`` bytes.

    The result is always ``ICMP_HEADER_LENGTH + payload_size`` bytes long and
    carries a valid checksum.
    """
    data = build_payload(payload_size)
    identifier &= 0xFFFF
    sequence &= 0xFFFF
    header = struct.pack("!BBHHH", icmp_type, 0, 0, identifier, sequence)
    csum = checksum(header + data)
    header = struct.pack("!BBHHH", icmp_type, 0, csum, identifier, sequence)
    return header + data


def parse_reply(raw: bytes) -> IcmpPacket:
    """Decode an ICMP message (without the IP header in front of it)."""
    if len(raw) < ICMP_HEADER_LENGTH:
        raise ProtocolParseError(
            f"ICMP message too short: {len(raw)} bytes "
            f"(expected at least {ICMP_HEADER_LENGTH})"
        )
    icmp_type, code, csum, identifier, sequence = struct.unpack(
        "!BBHHH", raw[:ICMP_HEADER_LENGTH]
    )
    return IcmpPacket(
        type=icmp_type,
        code=code,
        checksum=csum,
        id=identifier,
        sequence=sequence,
        data=bytes(raw[ICMP_HEADER_LENGTH:]),
    )


def parse_ip_header(raw: bytes) -> IpHeader:
    if len(raw) < IP_HEADER_MIN_LENGTH:
        raise ProtocolParseError(
            "Packet shorter than minimum IP header length (20 bytes)."
        )

    iph = struct.unpack("!BBHHHBBH4s4s", raw[:IP_HEADER_MIN_LENGTH])
    version = iph[0] >> 4
    ihl = iph[0] & 0xF
    if version != 4:
        raise ProtocolParseError(f"Unsupported IP version {version}")
    if ihl < 5:
        raise ProtocolParseError(f"Invalid IHL: {ihl} (must be at least 5)")
    if len(raw) < ihl * 4:
        raise ProtocolParseError(
            f"Packet too short for IHL: {len(raw)} bytes (expected {ihl * 4})"
        )

    return IpHeader(
        version=version,
        ihl=ihl,
        tos=iph[1],
        total_length=iph[2],
        id=iph[3],
        flags=iph[4] >> 13,
        fragment_offset=iph[4] & 0x1FFF,
        ttl=iph[5],
        protocol=iph[6],
        checksum=iph[7],
        src_addr=socket.inet_ntoa(iph[8]),
        dest_addr=socket.inet_ntoa(iph[9]),
    )


def strip_ip_header(raw: bytes) -> tuple[IpHeader, bytes]:
    """Split a raw IPv4 datagram into its header and the ICMP message."""
    header = parse_ip_header(raw)
    return header, bytes(raw[header.length :])


def embedded_probe(packet: IcmpPacket) -> Optional[IcmpPacket]:
    """Return the echo header quoted by an ICMP error message, if present."""
    if packet.type not in ICMP_ERROR_TYPES:
        return None
    try:
        _, inner = strip_ip_header(packet.data)
        return parse_reply(inner)
    except ProtocolParseError:
        return None


def hexdump(title: str, data: bytes, *, width: int = 16) -> None:
    """Log ``data`` as an offset/hex/ascii dump at debug level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    title = f"{title or 'DUMP'} ({len(data)} bytes)"
    lines = []
    for offset in range(0, len(data), width):
        chunk = data[offset : offset + width]
        hex_part = chunk.hex(" ")
        text = "".join(chr(byte) if 32 <= byte < 127 else "." for byte in chunk)
        lines.append(f"{offset:08x}  {hex_part:<{width * 3}} |{text}|")
    logger.debug("----------- %s ----------->>>\n%s", title, "\n".join(lines))
