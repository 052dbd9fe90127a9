"""Result types produced while tracing a route."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Sequence

from rich.text import Text

from ._exceptions import HopError, UnexpectedICMPTypeError
from ._icmp import ICMP_ECHO_REPLY, ICMP_TIME_EXCEEDED


class ReplyKind(enum.Enum):
    ECHO_REPLY = "echo-reply"
    TIME_EXCEEDED = "time-exceeded"
    OTHER = "other"

    @classmethod
    def classify(cls, icmp_type: int) -> "ReplyKind":
        if icmp_type == ICMP_ECHO_REPLY:
            return cls.ECHO_REPLY
        if icmp_type == ICMP_TIME_EXCEEDED:
            return cls.TIME_EXCEEDED
        return cls.OTHER


class HopStatus(enum.Enum):
    REACHED = "reached"
    TTL_EXCEEDED = "ttl-exceeded"
    ERROR = "error"


class TraceState(enum.Enum):
    REACHED = "reached"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ProbeAttempt:
    rtt: float
    responder: str
    kind: ReplyKind
    icmp_type: int
    icmp_code: int = 0


def aggregate_status(
    attempts: Sequence[ProbeAttempt], error: Optional[HopError] = None
) -> tuple[HopStatus, Optional[HopError]]:
    """Reduce the attempts of one hop to its status and error detail.

    Any echo reply wins, even next to a failure. Otherwise the first failure
    makes the hop an error. Otherwise a single time-exceeded is enough for
    the hop to count as an intermediate router. A hop that only ever saw
    other ICMP types is an error naming the last type observed.
    """
    kinds = [attempt.kind for attempt in attempts]
    if ReplyKind.ECHO_REPLY in kinds:
        return HopStatus.REACHED, error
    if error is not None:
        return HopStatus.ERROR, error
    if ReplyKind.TIME_EXCEEDED in kinds:
        return HopStatus.TTL_EXCEEDED, None
    if not attempts:
        raise ValueError("cannot aggregate a hop without attempts or error")
    last = attempts[-1]
    return HopStatus.ERROR, UnexpectedICMPTypeError(
        last.icmp_type, last.icmp_code, peer=last.responder
    )


@dataclass(frozen=True)
class ProbeOutcome:
    ttl: int
    attempts: tuple[ProbeAttempt, ...]
    status: HopStatus
    error: Optional[HopError] = None

    @classmethod
    def from_attempts(
        cls,
        ttl: int,
        attempts: Sequence[ProbeAttempt],
        error: Optional[HopError] = None,
    ) -> "ProbeOutcome":
        status, detail = aggregate_status(attempts, error)
        return cls(ttl=ttl, attempts=tuple(attempts), status=status, error=detail)

    @property
    def reached(self) -> bool:
        return self.status is HopStatus.REACHED

    @property
    def durations(self) -> list[float]:
        return [attempt.rtt for attempt in self.attempts]

    @property
    def responders(self) -> list[str]:
        return [attempt.responder for attempt in self.attempts]


@dataclass
class TracerouteResult:
    target: str
    resolved: Optional[str]
    max_ttl: int
    hops: list[ProbeOutcome] = field(default_factory=list)
    state: TraceState = TraceState.EXHAUSTED
    error: Optional[str] = None
    lines: list[str] = field(default_factory=list)

    @property
    def reached(self) -> bool:
        return self.state is TraceState.REACHED

    def __str__(self) -> str:
        return "\n".join(self.lines) + "\n"

    def __rich__(self) -> Text:  # pragma: no cover - rich display helper
        return Text(self.__str__())
