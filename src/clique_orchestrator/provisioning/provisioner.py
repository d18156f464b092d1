"""
Node container specifications.

The provisioner turns one resolved node into the ContainerSpec the runtime
creates. It decides the client's command line, environment, labels, port
bindings, mounts and network attachment. It creates nothing itself.

Container filesystem layout (the host network directory is mounted at /data):

    /data/genesis.json
    /data/nodes/<node_id>/key        private key read by the client
    /data/nodes/<node_id>/data       client database
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from clique_orchestrator.keys import NodeCredentials
from clique_orchestrator.network.info import ResolvedConfig, ResolvedNode
from clique_orchestrator.runtime.base import ContainerSpec, Mount, PortBinding
from clique_orchestrator.types import MissingBootstrapError

from .naming import (
    LABEL_CHAIN_ID,
    LABEL_NETWORK,
    LABEL_NODE,
    LABEL_ROLE,
    container_name,
    virtual_network_name,
)
from .roles import profile_for

logger = logging.getLogger(__name__)

DEFAULT_IMAGE: Final = "hyperledger/besu:latest"
"""Client image. Any image with a Besu-compatible command line works."""

CONTAINER_ROOT: Final = "/data"
"""Where the host network directory is mounted."""


class NodeProvisioner:
    """Builds container specs for nodes of a resolved network."""

    def __init__(self, image: str = DEFAULT_IMAGE) -> None:
        self.image = image

    def build_node_spec(
        self,
        node: ResolvedNode,
        creds: NodeCredentials,
        network: ResolvedConfig,
        network_dir: Path,
        bootstrap_url: str | None = None,
        mining: bool | None = None,
    ) -> ContainerSpec:
        """
        Build the container spec of one node.

        Args:
            node: The node, with address and ports resolved.
            creds: The node's identity. Its address becomes the coinbase.
            network: The network the node belongs to.
            network_dir: Host directory holding genesis.json and nodes/.
            bootstrap_url: Discovery URL of the designated bootnode.
            mining: Overrides the role's mining flag. The orchestrator sets
                it for a bootnode that is the only signer.

        Returns:
            The spec, ready for ContainerRuntime.create_resource.

        Raises:
            MissingBootstrapError: If a non-bootstrap node has no bootstrap URL.
        """
        profile = profile_for(node.role)
        mining = profile.mining if mining is None else mining

        if not profile.bootstrap and bootstrap_url is None:
            raise MissingBootstrapError(node.id)

        return ContainerSpec(
            name=container_name(network.network_id, node.id),
            image=self.image,
            command=self.build_command(node, creds, network, bootstrap_url, mining),
            env={**network.env, **node.env},
            labels={
                LABEL_NETWORK: network.network_id,
                LABEL_NODE: node.id,
                LABEL_ROLE: node.role.value,
                LABEL_CHAIN_ID: str(network.chain_id),
            },
            ports=[
                PortBinding(port=node.rpc_port, protocol="tcp"),
                PortBinding(port=node.p2p_port, protocol="tcp"),
                PortBinding(port=node.p2p_port, protocol="udp"),
            ],
            network=virtual_network_name(network.network_id),
            ip=node.ip,
            mounts=[Mount(source=str(network_dir), target=CONTAINER_ROOT, read_only=False)],
        )

    def build_command(
        self,
        node: ResolvedNode,
        creds: NodeCredentials,
        network: ResolvedConfig,
        bootstrap_url: str | None,
        mining: bool,
    ) -> list[str]:
        """
        Client arguments, in a fixed order.

        Paths and chain id first, then RPC, then P2P and discovery, then
        mining, then the node's extra arguments.
        """
        profile = profile_for(node.role)
        node_root = f"{CONTAINER_ROOT}/nodes/{node.id}"

        args = [
            f"--data-path={node_root}/data",
            f"--genesis-file={CONTAINER_ROOT}/genesis.json",
            f"--node-private-key-file={node_root}/key",
            f"--network-id={network.chain_id}",
            # RPC
            "--rpc-http-enabled",
            "--rpc-http-host=0.0.0.0",
            f"--rpc-http-port={node.rpc_port}",
            f"--rpc-http-api={profile.api_flag}",
            "--host-allowlist=*",
            # P2P
            f"--p2p-host={node.ip}",
            f"--p2p-port={node.p2p_port}",
            "--discovery-enabled=true",
        ]

        if bootstrap_url is not None and bootstrap_url != creds.discovery_url:
            args.append(f"--bootnodes={bootstrap_url}")

        if mining:
            args.extend(["--miner-enabled", f"--miner-coinbase={creds.prefixed_address}"])

        args.extend(node.extra_args)

        logger.debug("Command for %s/%s: %s", network.network_id, node.id, " ".join(args))
        return args
