"""Run-scoped settings for a trace."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field

DEFAULT_MAX_TTL = 64
DEFAULT_ATTEMPTS = 3
DEFAULT_TIMEOUT = 10.0
DEFAULT_PAYLOAD_SIZE = 56
MAX_PAYLOAD_SIZE = 65507


def _process_identifier() -> int:
    return os.getpid() & 0xFFFF


@dataclass(frozen=True)
class TraceConfig:
    max_ttl: int = DEFAULT_MAX_TTL
    attempts: int = DEFAULT_ATTEMPTS
    timeout: float = DEFAULT_TIMEOUT
    payload_size: int = DEFAULT_PAYLOAD_SIZE
    identifier: int = field(default_factory=_process_identifier)
    resolve_dns: bool = True
    # Ignore ICMP traffic that does not carry ``identifier``.
    match_identifier: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.max_ttl <= 255:
            raise ValueError(f"max_ttl must be within 1..255, got {self.max_ttl}")
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if not 0 <= self.payload_size <= MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"payload_size must be within 0..{MAX_PAYLOAD_SIZE}, "
                f"got {self.payload_size}"
            )
        object.__setattr__(self, "identifier", self.identifier & 0xFFFF)

    def replace(self, **changes) -> "TraceConfig":
        return dataclasses.replace(self, **changes)
