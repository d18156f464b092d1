"""Names and labels of runtime resources."""

from __future__ import annotations

from typing import Final

RESOURCE_PREFIX: Final = "clique"
"""Every runtime resource the orchestrator creates starts with this prefix."""

LABEL_NETWORK: Final = "clique.network.id"
LABEL_NODE: Final = "clique.node.id"
LABEL_ROLE: Final = "clique.node.role"
LABEL_CHAIN_ID: Final = "clique.network.chainId"


def virtual_network_name(network_id: str) -> str:
    """Name of the private virtual network: `clique-<network_id>`."""
    return f"{RESOURCE_PREFIX}-{network_id}"


def container_name(network_id: str, node_id: str) -> str:
    """Name of a node container: `clique-<network_id>-<node_id>`."""
    return f"{RESOURCE_PREFIX}-{network_id}-{node_id}"


def network_labels(network_id: str, chain_id: int) -> dict[str, str]:
    """Labels attached to the virtual network."""
    return {LABEL_NETWORK: network_id, LABEL_CHAIN_ID: str(chain_id)}
