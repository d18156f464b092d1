"""
Cross-network conflict validation.

A candidate network is checked against every registered network before any
resource is created. All enabled checks run, even after the first hit, so
the caller sees every problem at once.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import Final

from clique_orchestrator.allocation import AddressAllocator
from clique_orchestrator.network.config import NetworkConfig, NodeSpec, Role
from clique_orchestrator.network.info import ACTIVE_NETWORK_STATUSES, NetworkInfo, ResolvedConfig
from clique_orchestrator.network.subnet import subnets_overlap
from clique_orchestrator.provisioning.naming import virtual_network_name
from clique_orchestrator.registry import NetworkRegistry
from clique_orchestrator.runtime.base import ContainerRuntime
from clique_orchestrator.types import ConflictError, ValidationError

from .conflicts import Conflict, ConflictKind
from .options import RoleLimits, ValidationOptions
from .suggestions import (
    P2P_SUGGESTION_START,
    RPC_SUGGESTION_START,
    suggest_chain_ids,
    suggest_names,
    suggest_node_ids,
    suggest_ports,
    suggest_subnets,
)

logger = logging.getLogger(__name__)

PUBLIC_CHAIN_IDS: Final = {
    1: "Ethereum mainnet",
    3: "Ropsten",
    4: "Rinkeby",
    5: "Goerli",
    42: "Kovan",
    56: "BNB Smart Chain",
    137: "Polygon",
    43114: "Avalanche C-Chain",
}
"""Chain ids of public networks. Reusing one risks replayable transactions."""


class ConflictValidator:
    """
    Checks candidates against the registry and the runtime.

    Reads only. Never writes to the registry or creates resources, so
    running it twice against an unchanged registry gives the same result.
    """

    def __init__(
        self,
        registry: NetworkRegistry,
        runtime: ContainerRuntime | None = None,
        allocator: AddressAllocator | None = None,
        options: ValidationOptions | None = None,
        limits: RoleLimits | None = None,
    ) -> None:
        """
        Args:
            registry: Source of truth for other networks.
            runtime: Queried for stray virtual networks. The check is skipped
                when no runtime is given.
            allocator: Resolves addresses and ports once no conflict remains.
            options: Which checks run.
            limits: Maximum nodes per role.
        """
        self.registry = registry
        self.runtime = runtime
        self.allocator = allocator or AddressAllocator()
        self.options = options or ValidationOptions()
        self.limits = limits or RoleLimits()

    # -------------------------------------------------------------------------
    # Whole networks
    # -------------------------------------------------------------------------

    async def validate(self, candidate: NetworkConfig) -> ResolvedConfig:
        """
        Check a candidate and resolve it.

        Returns:
            The candidate with every address and port assigned.

        Raises:
            ValidationError: If role counts exceed the limits.
            ConflictError: With every conflict found.
            AllocationError: If the subnet or port range runs out.
        """
        self.check_shape(candidate)

        conflicts = await self.find_conflicts(candidate)
        if conflicts:
            raise ConflictError(conflicts)

        reserved = {port for info in self.registry.list() for port in info.bound_ports()}
        return self.allocator.resolve_config(candidate, reserved_ports=reserved)

    def check_shape(self, candidate: NetworkConfig) -> None:
        """
        Checks that need no outside state beyond the configured limits.

        Raises:
            ValidationError: If a role count exceeds its limit.
        """
        self._check_role_counts(candidate.count_roles())

        if self.options.warn_public_chain_ids and candidate.chain_id in PUBLIC_CHAIN_IDS:
            logger.warning(
                "Chain id %d of network %s belongs to %s; transactions may be replayable there",
                candidate.chain_id,
                candidate.network_id,
                PUBLIC_CHAIN_IDS[candidate.chain_id],
            )

    async def find_conflicts(self, candidate: NetworkConfig) -> list[Conflict]:
        """
        Run every enabled check and collect the conflicts.

        Returns:
            Conflicts in check order: name, chain id, subnet, ports, runtime.
        """
        existing = self.registry.list()
        conflicts: list[Conflict] = []

        if self.options.check_name:
            conflicts.extend(self._name_conflicts(candidate, existing))
        if self.options.check_chain_id:
            conflicts.extend(
                self._chain_id_conflicts(candidate.network_id, candidate.chain_id, existing)
            )
        if self.options.check_subnet:
            conflicts.extend(self._subnet_conflicts(candidate, existing))
        if self.options.check_ports:
            conflicts.extend(self._port_conflicts(candidate.nodes, existing, "nodes"))
        if self.options.check_runtime_network:
            conflicts.extend(await self._runtime_conflicts(candidate, existing))

        return conflicts

    # -------------------------------------------------------------------------
    # Single nodes
    # -------------------------------------------------------------------------

    def find_node_conflicts(self, network: NetworkInfo, node: NodeSpec) -> list[Conflict]:
        """
        Conflicts of a node about to join a network.

        Covers the node id, an explicit address and explicit ports.
        """
        conflicts: list[Conflict] = []

        if node.id in network.nodes:
            conflicts.append(
                Conflict(
                    kind=ConflictKind.NODE_ID,
                    message=(
                        f"Node id '{node.id}' is already used in network '{network.network_id}'"
                    ),
                    field="node.id",
                    existing_network=network.network_id,
                    suggestions=suggest_node_ids(node.id, network.nodes.keys()),
                )
            )

        if node.ip is not None:
            holder = next((n.id for n in network.nodes.values() if n.ip == node.ip), None)
            if holder is not None:
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.NODE_IP,
                        message=f"Address {node.ip} is already held by node '{holder}'",
                        field="node.ip",
                        existing_network=network.network_id,
                    )
                )

        if self.options.check_ports:
            conflicts.extend(self._port_conflicts([node], self.registry.list(), "node"))

        return conflicts

    def check_node_shape(self, network: NetworkInfo, node: NodeSpec) -> None:
        """
        Role limits for a network that gains one node.

        Raises:
            ValidationError: If the role is already at its limit.
        """
        counts = Counter(n.role for n in network.nodes.values())
        counts[node.role] += 1
        self._check_role_counts(counts)

    def find_restart_conflicts(self, network: NetworkInfo) -> list[Conflict]:
        """
        Conflicts of a stopped network about to run again.

        Another network may have taken the chain id while this one was down.
        """
        if not self.options.check_chain_id:
            return []
        return self._chain_id_conflicts(
            network.network_id, network.config.chain_id, self.registry.list()
        )

    # -------------------------------------------------------------------------
    # Individual checks
    # -------------------------------------------------------------------------

    def _check_role_counts(self, counts: dict[Role, int] | Counter[Role]) -> None:
        for role, count in counts.items():
            limit = self.limits.limit_for(role)
            if count > limit:
                raise ValidationError(
                    "nodes", f"{count} nodes with role '{role.value}' exceed the limit of {limit}"
                )

    @staticmethod
    def _name_conflicts(candidate: NetworkConfig, existing: list[NetworkInfo]) -> list[Conflict]:
        taken = {info.network_id for info in existing}
        if candidate.network_id not in taken:
            return []
        return [
            Conflict(
                kind=ConflictKind.NAME,
                message=f"Network '{candidate.network_id}' already exists",
                field="networkId",
                existing_network=candidate.network_id,
                suggestions=suggest_names(candidate.network_id, taken),
            )
        ]

    @staticmethod
    def _chain_id_conflicts(
        network_id: str, chain_id: int, existing: list[NetworkInfo]
    ) -> list[Conflict]:
        # Stopped networks do not hold their chain id: nothing is listening.
        active = [
            info
            for info in existing
            if info.status in ACTIVE_NETWORK_STATUSES and info.network_id != network_id
        ]
        holder = next((info for info in active if info.config.chain_id == chain_id), None)
        if holder is None:
            return []
        used = {info.config.chain_id for info in active}
        return [
            Conflict(
                kind=ConflictKind.CHAIN_ID,
                message=f"Chain id {chain_id} is used by network '{holder.network_id}'",
                field="chainId",
                existing_network=holder.network_id,
                suggestions=suggest_chain_ids(used),
            )
        ]

    @staticmethod
    def _subnet_conflicts(candidate: NetworkConfig, existing: list[NetworkInfo]) -> list[Conflict]:
        subnets = [info.config.subnet for info in existing]
        return [
            Conflict(
                kind=ConflictKind.SUBNET_OVERLAP,
                message=(
                    f"Subnet {candidate.subnet} overlaps {info.config.subnet} "
                    f"of network '{info.network_id}'"
                ),
                field="subnet",
                existing_network=info.network_id,
                suggestions=suggest_subnets(subnets),
            )
            for info in existing
            if subnets_overlap(candidate.subnet, info.config.subnet)
        ]

    @staticmethod
    def _port_conflicts(
        nodes: Sequence[NodeSpec], existing: list[NetworkInfo], field_prefix: str
    ) -> list[Conflict]:
        """Explicit ports only. Auto-assigned ports always skip bound ones."""
        holders: dict[int, str] = {}
        for info in existing:
            for port in info.bound_ports():
                holders[port] = info.network_id

        explicit: list[tuple[str, str, int]] = []
        for node in nodes:
            if node.rpc_port is not None:
                explicit.append((node.id, "rpcPort", node.rpc_port))
            if node.p2p_port is not None:
                explicit.append((node.id, "p2pPort", node.p2p_port))

        used = set(holders) | {port for _, _, port in explicit}
        counts = Counter(port for _, _, port in explicit)
        reported: set[int] = set()
        conflicts: list[Conflict] = []

        for node_id, attr, port in explicit:
            if port in reported:
                continue
            start = RPC_SUGGESTION_START if attr == "rpcPort" else P2P_SUGGESTION_START
            if port in holders:
                message = f"Port {port} of node '{node_id}' is bound by network '{holders[port]}'"
            elif counts[port] > 1:
                message = f"Port {port} is requested by more than one node"
            else:
                continue
            reported.add(port)
            conflicts.append(
                Conflict(
                    kind=ConflictKind.PORT,
                    message=message,
                    field=f"{field_prefix}.{node_id}.{attr}",
                    existing_network=holders.get(port),
                    suggestions=suggest_ports(start, used),
                )
            )

        return conflicts

    async def _runtime_conflicts(
        self, candidate: NetworkConfig, existing: list[NetworkInfo]
    ) -> list[Conflict]:
        if self.runtime is None:
            return []

        # A registered network owns its virtual network: the name check
        # already reports it.
        if any(info.network_id == candidate.network_id for info in existing):
            return []

        name = virtual_network_name(candidate.network_id)
        handle = await self.runtime.find_virtual_network(name)
        if handle is None:
            return []
        return [
            Conflict(
                kind=ConflictKind.RUNTIME_NETWORK,
                message=f"The runtime already has a virtual network named '{name}'",
                field="networkId",
                suggestions=suggest_names(
                    candidate.network_id, {info.network_id for info in existing}
                ),
            )
        ]
