"""
Resolved configuration and registry records.

After validation and allocation every node has a concrete address and port
pair. The registry then stores one NetworkInfo per provisioned network.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import Field

from clique_orchestrator.genesis.document import GenesisDocument
from clique_orchestrator.keys.credentials import NodeCredentials
from clique_orchestrator.types import CamelModel, FrozenModel

from .config import ConsensusParams, Role


class NetworkStatus(str, Enum):
    """Registry-level status of a network."""

    CREATING = "creating"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


class NodeStatus(str, Enum):
    """Status of a single node resource."""

    CREATING = "creating"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


ACTIVE_NETWORK_STATUSES = frozenset({NetworkStatus.CREATING, NetworkStatus.RUNNING})
"""Networks in these states hold their chain id."""


class ResolvedNode(FrozenModel):
    """A node with every address and port decided."""

    id: str
    role: Role
    ip: str
    rpc_port: int
    p2p_port: int
    env: dict[str, str] = Field(default_factory=dict)
    extra_args: list[str] = Field(default_factory=list)


class ResolvedConfig(FrozenModel):
    """A validated NetworkConfig whose nodes are all resolved."""

    network_id: str
    chain_id: int
    subnet: str
    nodes: list[ResolvedNode]
    consensus: ConsensusParams = Field(default_factory=ConsensusParams)
    prealloc: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)

    @property
    def bootnode(self) -> ResolvedNode:
        """The designated bootstrap node: the first node with the bootnode role."""
        return next(node for node in self.nodes if node.role is Role.BOOTNODE)

    def ports(self) -> set[int]:
        """Every host port bound by this configuration."""
        return {port for node in self.nodes for port in (node.rpc_port, node.p2p_port)}


class NodeRuntimeInfo(CamelModel):
    """Runtime record of one node. Owned by its NetworkInfo."""

    id: str
    role: Role
    ip: str
    rpc_port: int
    p2p_port: int
    container_name: str
    container_handle: str | None = None
    """Runtime handle. None while the container is being created."""

    status: NodeStatus = NodeStatus.CREATING
    credentials: NodeCredentials
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NetworkInfo(CamelModel):
    """
    Registry entry for one network.

    Only the orchestrator mutates these records, always under the
    per-network lock, and always by writing the whole record back.
    """

    network_id: str
    config: ResolvedConfig
    docker_network_id: str | None = None
    """Handle of the runtime virtual network. None until it is created."""

    status: NetworkStatus = NetworkStatus.CREATING
    nodes: dict[str, NodeRuntimeInfo] = Field(default_factory=dict)
    genesis: GenesisDocument | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def bound_ports(self) -> set[int]:
        """Host ports held by this network, including nodes added after creation."""
        ports = self.config.ports()
        for node in self.nodes.values():
            ports.update((node.rpc_port, node.p2p_port))
        return ports

    def bootnode(self) -> NodeRuntimeInfo | None:
        """The running record of the designated bootnode, if it still exists."""
        designated = self.nodes.get(self.config.bootnode.id)
        if designated is not None:
            return designated
        return next((n for n in self.nodes.values() if n.role is Role.BOOTNODE), None)
