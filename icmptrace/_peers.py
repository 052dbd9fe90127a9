"""Rendering of the responders seen across the attempts of a hop."""

from __future__ import annotations

import socket
from typing import Callable, Sequence

from ._icmp import logger

ReverseLookup = Callable[[str], Sequence[str]]


def reverse_lookup(address: str) -> list[str]:
    """Return the PTR names of ``address``; raises :class:`OSError` on failure."""
    hostname, aliases, _ = socket.gethostbyaddr(address)
    return [hostname, *aliases]


def peers_identical(responders: Sequence[str]) -> bool:
    return all(peer == responders[0] for peer in responders[1:])


def summarize(responders: Sequence[str], lookup: ReverseLookup = reverse_lookup) -> str:
    """Render ``responders`` as ``[addr1 (name1 name2)  addr2]``.

    Identical responders collapse to a single address, otherwise every
    responder is kept in attempt order. Names come from ``lookup``; a failed
    lookup just leaves the address without annotation.
    """
    if not responders:
        return "[]"
    shown = [responders[0]] if peers_identical(responders) else list(responders)

    names: dict[str, list[str]] = {}
    for address in dict.fromkeys(shown):
        try:
            names[address] = [name for name in lookup(address) if name]
        except OSError as exc:
            logger.debug("Reverse lookup of %s failed: %s", address, exc)
            names[address] = []

    entries = []
    for address in shown:
        if names[address]:
            entries.append(f"{address} ({' '.join(names[address])})")
        else:
            entries.append(address)
    return "[" + "  ".join(entries) + "]"
