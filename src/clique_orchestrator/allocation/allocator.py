"""
Deterministic IP and port allocation.

Nodes without an explicit address get sequential hosts starting at a fixed
offset from the network address. The low addresses stay free for the
gateway and for manual assignment:

    172.20.0.0/24, offset 10  ->  172.20.0.10, 172.20.0.11, ...

When the offset lands past the usable range (small subnets) or the upper
part of the range fills up, allocation continues from the first usable host.
The range is exhausted only when every usable host is taken.

Ports are handed out sequentially from the RPC and P2P bases. RPC and P2P
ports share one space: a port bound for one purpose is never handed out for
the other.
"""

from __future__ import annotations

import ipaddress
import itertools
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from clique_orchestrator.network.config import NetworkConfig
from clique_orchestrator.network.info import ResolvedConfig, ResolvedNode
from clique_orchestrator.network.subnet import contains_host, parse_subnet, usable_range
from clique_orchestrator.types import RangeExhausted, ValidationError

DEFAULT_IP_OFFSET = 10
"""First auto-assigned host is network address + 10."""

DEFAULT_RPC_PORT = 8545
"""Standard Ethereum JSON-RPC port."""

DEFAULT_P2P_PORT = 30303
"""Standard devp2p port."""

MAX_PORT = 65535
"""Highest TCP/UDP port number."""


class Addressable(Protocol):
    """Anything with an id and optional explicit address and ports."""

    @property
    def id(self) -> str: ...

    @property
    def ip(self) -> str | None: ...

    @property
    def rpc_port(self) -> int | None: ...

    @property
    def p2p_port(self) -> int | None: ...


@dataclass(slots=True, frozen=True)
class AddressAllocator:
    """
    Pure allocator of host addresses and ports.

    Holds no state between calls. Everything already in use is passed in
    through `taken` and `reserved`.
    """

    ip_offset: int = DEFAULT_IP_OFFSET
    """Distance of the first auto-assigned host from the network address."""

    base_rpc_port: int = DEFAULT_RPC_PORT
    """First auto-assigned RPC port."""

    base_p2p_port: int = DEFAULT_P2P_PORT
    """First auto-assigned P2P port."""

    def resolve(
        self,
        subnet: str,
        nodes: Sequence[Addressable],
        taken: Iterable[str] = (),
    ) -> dict[str, str]:
        """
        Assign an IP to every node.

        Args:
            subnet: IPv4 CIDR of the virtual network.
            nodes: Nodes in provisioning order.
            taken: Addresses already held by other nodes of this network.

        Returns:
            Node id to IP, in node order.

        Raises:
            InvalidSubnet: If the CIDR is malformed.
            ValidationError: If an explicit IP lies outside the usable range.
            RangeExhausted: If the subnet runs out of hosts.
        """
        network = parse_subnet(subnet)
        used = {int(ipaddress.IPv4Address(ip)) for ip in taken}

        # Explicit addresses are claimed first so auto-assignment skips them.
        for node in nodes:
            if node.ip is None:
                continue
            if not contains_host(network, node.ip):
                raise ValidationError(
                    f"nodes.{node.id}.ip", f"outside the usable range of {network}", node.ip
                )
            used.add(int(ipaddress.IPv4Address(node.ip)))

        candidates = self._host_candidates(network)
        assigned: dict[str, str] = {}
        for node in nodes:
            if node.ip is not None:
                assigned[node.id] = node.ip
                continue

            value = next((c for c in candidates if c not in used), None)
            if value is None:
                raise RangeExhausted(
                    "ip", f"host #{len(assigned) + 1}", str(network.broadcast_address - 1)
                )
            used.add(value)
            assigned[node.id] = str(ipaddress.IPv4Address(value))

        return assigned

    def allocate_ports(
        self,
        nodes: Sequence[Addressable],
        base_rpc_port: int | None = None,
        base_p2p_port: int | None = None,
        reserved: Iterable[int] = (),
    ) -> dict[str, tuple[int, int]]:
        """
        Assign an (rpc_port, p2p_port) pair to every node.

        Args:
            nodes: Nodes in provisioning order.
            base_rpc_port: First RPC candidate. Defaults to the allocator's.
            base_p2p_port: First P2P candidate. Defaults to the allocator's.
            reserved: Host ports already bound elsewhere.

        Returns:
            Node id to (rpc_port, p2p_port), in node order.

        Raises:
            RangeExhausted: If a sequence runs past port 65535.
        """
        used = set(reserved)
        for node in nodes:
            used.update(p for p in (node.rpc_port, node.p2p_port) if p is not None)

        rpc_ports = self._port_candidates(base_rpc_port or self.base_rpc_port, used, "rpc port")
        p2p_ports = self._port_candidates(base_p2p_port or self.base_p2p_port, used, "p2p port")

        assigned: dict[str, tuple[int, int]] = {}
        for node in nodes:
            rpc = node.rpc_port if node.rpc_port is not None else next(rpc_ports)
            p2p = node.p2p_port if node.p2p_port is not None else next(p2p_ports)
            assigned[node.id] = (rpc, p2p)

        return assigned

    def resolve_config(
        self,
        config: NetworkConfig,
        reserved_ports: Iterable[int] = (),
    ) -> ResolvedConfig:
        """
        Resolve every node of a config.

        Args:
            config: The validated input.
            reserved_ports: Host ports held by other networks.

        Returns:
            The same network with every IP and port filled in.
        """
        ips = self.resolve(config.subnet, config.nodes)
        ports = self.allocate_ports(config.nodes, reserved=reserved_ports)

        return ResolvedConfig(
            network_id=config.network_id,
            chain_id=config.chain_id,
            subnet=config.subnet,
            nodes=[
                ResolvedNode(
                    id=node.id,
                    role=node.role,
                    ip=ips[node.id],
                    rpc_port=ports[node.id][0],
                    p2p_port=ports[node.id][1],
                    env=node.env,
                    extra_args=node.extra_args,
                )
                for node in config.nodes
            ],
            consensus=config.consensus,
            prealloc=config.prealloc,
            env=config.env,
        )

    def _host_candidates(self, network: ipaddress.IPv4Network) -> Iterator[int]:
        first, last = usable_range(network)
        if first > last:
            return iter(())
        start = int(network.network_address) + self.ip_offset
        if not first <= start <= last:
            start = first
        return itertools.chain(range(start, last + 1), range(first, start))

    @staticmethod
    def _port_candidates(base: int, used: set[int], resource: str) -> Iterator[int]:
        """Yield free ports from base upward, marking each one used."""
        port = base
        while True:
            while port in used:
                port += 1
            if port > MAX_PORT:
                raise RangeExhausted(resource, port, MAX_PORT)
            used.add(port)
            yield port
            port += 1
