"""Typed conflicts between a candidate network and existing ones."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from clique_orchestrator.types import FrozenModel


class ConflictKind(str, Enum):
    """What collided."""

    NAME = "name"
    """The network id is already registered."""

    CHAIN_ID = "chain_id"
    """An active network already uses the chain id."""

    SUBNET_OVERLAP = "subnet_overlap"
    """The subnet intersects a registered subnet."""

    PORT = "port"
    """A host port is bound twice."""

    RUNTIME_NETWORK = "runtime_network"
    """The runtime already has a virtual network with the derived name."""

    NODE_ID = "node_id"
    """A node id is already used inside the network."""

    NODE_IP = "node_ip"
    """A static address is already held inside the network."""


class Conflict(FrozenModel):
    """One collision, with values the caller could use instead."""

    kind: ConflictKind
    message: str
    field: str
    """Dotted path of the offending input field."""

    existing_network: str | None = None
    """The registered network it collides with, if any."""

    suggestions: list[str] = Field(default_factory=list)
    """Unused alternatives, best first."""
