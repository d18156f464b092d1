"""
Remediation suggestions.

Each generator scans a fixed candidate range and returns the first values
nothing in the registry uses.
"""

from __future__ import annotations

import itertools
from collections.abc import Collection, Iterable
from typing import Final

from clique_orchestrator.network.config import MAX_NETWORK_ID_LENGTH
from clique_orchestrator.network.subnet import subnets_overlap

MAX_SUGGESTIONS: Final = 5
"""Upper bound on suggestions per conflict."""

CHAIN_ID_RANGE: Final = range(1337, 1400)
"""Chain ids conventionally used by private development networks."""

ALTERNATE_SUBNETS: Final = (
    "172.21.0.0/24",
    "172.22.0.0/24",
    "172.23.0.0/24",
    "192.168.100.0/24",
    "192.168.101.0/24",
)
"""Private /24 blocks offered instead of an overlapping subnet."""

NAME_SUFFIXES: Final = ("-dev", "-test", "-staging")

RPC_SUGGESTION_START: Final = 8546
P2P_SUGGESTION_START: Final = 30304
MAX_PORT: Final = 65535


def suggest_chain_ids(used: Collection[int]) -> list[str]:
    """Free chain ids from the development range."""
    free = (str(chain_id) for chain_id in CHAIN_ID_RANGE if chain_id not in used)
    return _first(free)


def suggest_subnets(existing: Iterable[str]) -> list[str]:
    """Alternate subnets that overlap no registered subnet."""
    existing = list(existing)
    free = (
        candidate
        for candidate in ALTERNATE_SUBNETS
        if not any(subnets_overlap(candidate, other) for other in existing)
    )
    return _first(free)


def suggest_names(network_id: str, taken: Collection[str]) -> list[str]:
    """Suffixed variants of a taken network id."""
    free = (
        name
        for name in (network_id + suffix for suffix in NAME_SUFFIXES)
        if name not in taken and len(name) <= MAX_NETWORK_ID_LENGTH
    )
    return _first(free)


def suggest_ports(start: int, used: Collection[int]) -> list[str]:
    """Free host ports counting up from start."""
    free = (str(port) for port in range(start, MAX_PORT + 1) if port not in used)
    return _first(free)


def suggest_node_ids(node_id: str, taken: Collection[str]) -> list[str]:
    """Numbered variants of a taken node id."""
    free = (f"{node_id}-{n}" for n in range(2, 100) if f"{node_id}-{n}" not in taken)
    return _first(free)


def _first(values: Iterable[str]) -> list[str]:
    return list(itertools.islice(values, MAX_SUGGESTIONS))
