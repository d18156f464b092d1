"""Factories for network configs and related test data."""

from __future__ import annotations

from typing import Any

from clique_orchestrator.allocation import AddressAllocator
from clique_orchestrator.genesis import GenesisBuilder
from clique_orchestrator.keys import KeyGenerator
from clique_orchestrator.network.config import NetworkConfig, NodeSpec, Role
from clique_orchestrator.network.info import NetworkInfo, NetworkStatus, NodeRuntimeInfo, NodeStatus
from clique_orchestrator.provisioning import container_name


def make_nodes(validators: int = 2, rpc: int = 0, plain: int = 0) -> list[NodeSpec]:
    """One bootnode followed by the requested number of nodes per role."""
    nodes = [NodeSpec(id="boot", role=Role.BOOTNODE)]
    nodes += [NodeSpec(id=f"signer-{i}", role=Role.VALIDATOR) for i in range(1, validators + 1)]
    nodes += [NodeSpec(id=f"rpc-{i}", role=Role.RPC) for i in range(1, rpc + 1)]
    nodes += [NodeSpec(id=f"plain-{i}", role=Role.PLAIN) for i in range(1, plain + 1)]
    return nodes


def make_config(
    network_id: str = "dev-net",
    chain_id: int = 1337,
    subnet: str = "172.20.0.0/24",
    *,
    validators: int = 2,
    rpc: int = 0,
    plain: int = 0,
    nodes: list[NodeSpec] | None = None,
    **overrides: Any,
) -> NetworkConfig:
    """A valid network config. Every argument can be overridden."""
    return NetworkConfig(
        network_id=network_id,
        chain_id=chain_id,
        subnet=subnet,
        nodes=nodes if nodes is not None else make_nodes(validators, rpc, plain),
        **overrides,
    )


def make_config_data(**overrides: Any) -> dict[str, Any]:
    """The camelCase mapping a YAML network file would contain."""
    data: dict[str, Any] = {
        "networkId": "dev-net",
        "chainId": 1337,
        "subnet": "172.20.0.0/24",
        "nodes": [
            {"id": "boot", "role": "bootnode"},
            {"id": "signer-1", "role": "validator"},
            {"id": "gateway", "role": "rpc", "rpcPort": 18545},
        ],
    }
    data.update(overrides)
    return data


def make_network_info(
    config: NetworkConfig | None = None,
    status: NetworkStatus = NetworkStatus.RUNNING,
    reserved_ports: set[int] | None = None,
) -> NetworkInfo:
    """
    A registry record for a config, as if it had been provisioned.

    Every node gets a fresh identity, a container handle and the running
    status. The genesis signs with the validators.
    """
    config = config or make_config()
    resolved = AddressAllocator().resolve_config(config, reserved_ports or ())
    keys = KeyGenerator()
    nodes = {}
    for node in resolved.nodes:
        nodes[node.id] = NodeRuntimeInfo(
            id=node.id,
            role=node.role,
            ip=node.ip,
            rpc_port=node.rpc_port,
            p2p_port=node.p2p_port,
            container_name=container_name(resolved.network_id, node.id),
            container_handle=f"handle-{resolved.network_id}-{node.id}",
            status=NodeStatus.RUNNING,
            credentials=keys.generate(node.ip, node.p2p_port),
        )
    signers = [nodes[n.id].credentials for n in resolved.nodes if n.role is Role.VALIDATOR]
    return NetworkInfo(
        network_id=resolved.network_id,
        config=resolved,
        status=status,
        nodes=nodes,
        genesis=GenesisBuilder().build(resolved.chain_id, signers),
    )
