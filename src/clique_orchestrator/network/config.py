"""
Declarative network description.

A network is described by its id, chain id, subnet and a list of nodes.
These models are the user-facing input: they are loaded from YAML or JSON
and coerced into typed values.

Example YAML::

    networkId: dev-net
    chainId: 1337
    subnet: 172.20.0.0/24
    nodes:
      - id: boot
        role: bootnode
      - id: signer-1
        role: validator
      - id: gateway
        role: rpc
        rpcPort: 8545
"""

from __future__ import annotations

import ipaddress
import re
from enum import Enum
from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import Field, field_validator, model_validator

from clique_orchestrator.types import FrozenModel, ValidationError

from .subnet import contains_host, parse_subnet

NETWORK_ID_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*$")
"""Network ids become part of container and virtual network names."""

NODE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")
"""Node ids become part of container names."""

MAX_NETWORK_ID_LENGTH = 64
"""Docker rejects longer network names once the prefix is added."""

DEFAULT_BLOCK_PERIOD_SECONDS = 4
"""Seconds between Clique blocks."""

DEFAULT_EPOCH_LENGTH = 30000
"""Blocks between Clique checkpoints that reset pending votes."""


class Role(str, Enum):
    """
    The closed set of node roles.

    The role decides which APIs a node exposes, whether it seals blocks and
    whether its address is written into the genesis signer list.
    """

    BOOTNODE = "bootnode"
    """Discovery entry point. Every other node dials it at startup."""

    VALIDATOR = "validator"
    """Clique signer. Seals blocks with its node key."""

    RPC = "rpc"
    """Public JSON-RPC gateway with transaction pool access."""

    PLAIN = "plain"
    """Follower with read-only APIs."""


class NodeSpec(FrozenModel):
    """One node of a network, as requested by the caller."""

    id: str
    """Unique within the network."""

    role: Role
    """What the node does in the network."""

    ip: str | None = None
    """Static IP inside the subnet. Allocated when omitted."""

    rpc_port: int | None = Field(default=None, ge=1, le=65535)
    """Host and container JSON-RPC port. Allocated when omitted."""

    p2p_port: int | None = Field(default=None, ge=1, le=65535)
    """Host and container devp2p port. Allocated when omitted."""

    env: dict[str, str] = Field(default_factory=dict)
    """Extra container environment for this node."""

    extra_args: list[str] = Field(default_factory=list)
    """Extra client arguments appended after the generated ones."""

    @field_validator("id")
    @classmethod
    def check_id(cls, v: str) -> str:
        """Node ids must be usable inside container names."""
        if not NODE_ID_PATTERN.match(v):
            raise ValueError(f"node id {v!r} must be alphanumeric, '-' or '_'")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def accept_miner_alias(cls, v: Any) -> Any:
        """Older configs call validators 'miner'."""
        if isinstance(v, str) and v.lower() == "miner":
            return Role.VALIDATOR
        return v

    @field_validator("ip")
    @classmethod
    def check_ip(cls, v: str | None) -> str | None:
        """Explicit addresses must be IPv4 literals."""
        if v is not None:
            ipaddress.IPv4Address(v)
        return v


class ConsensusParams(FrozenModel):
    """Clique timing parameters. Fixed configuration, never computed."""

    period: int = Field(default=DEFAULT_BLOCK_PERIOD_SECONDS, ge=1)
    """Block period in seconds."""

    epoch: int = Field(default=DEFAULT_EPOCH_LENGTH, ge=1)
    """Epoch length in blocks."""


class NetworkConfig(FrozenModel):
    """
    Immutable description of a network to provision.

    Construction checks the invariants that do not need outside state:

    - the network id and subnet are well formed
    - node ids are unique
    - explicit node addresses are unique and inside the subnet
    - at least one node is a bootnode
    """

    network_id: str
    """Unique registry key. Alphanumeric and hyphens."""

    chain_id: int = Field(gt=0)
    """Numeric chain id written into the genesis and passed to every node."""

    subnet: str
    """IPv4 CIDR block of the private virtual network."""

    nodes: list[NodeSpec] = Field(min_length=1)
    """Initial node set."""

    consensus: ConsensusParams = Field(default_factory=ConsensusParams)
    """Clique period and epoch."""

    prealloc: dict[str, str] = Field(default_factory=dict)
    """Extra funded accounts: address to balance (hex wei)."""

    env: dict[str, str] = Field(default_factory=dict)
    """Container environment shared by every node."""

    @field_validator("network_id")
    @classmethod
    def check_network_id(cls, v: str) -> str:
        """Network ids must be usable inside Docker resource names."""
        if not NETWORK_ID_PATTERN.match(v):
            raise ValueError(
                f"network id {v!r} must start alphanumeric and contain only [a-zA-Z0-9-]"
            )
        if len(v) > MAX_NETWORK_ID_LENGTH:
            raise ValueError(f"network id must not exceed {MAX_NETWORK_ID_LENGTH} characters")
        return v

    @field_validator("subnet")
    @classmethod
    def normalize_subnet(cls, v: str) -> str:
        """Store the subnet with host bits masked off."""
        try:
            return str(parse_subnet(v))
        except ValidationError as exc:
            raise ValueError(exc.issue) from exc

    @model_validator(mode="after")
    def check_nodes(self) -> NetworkConfig:
        """Enforce node-level invariants."""
        seen_ids: set[str] = set()
        seen_ips: set[str] = set()
        network = parse_subnet(self.subnet)

        for node in self.nodes:
            if node.id in seen_ids:
                raise ValueError(f"duplicate node id {node.id!r}")
            seen_ids.add(node.id)

            if node.ip is not None:
                if node.ip in seen_ips:
                    raise ValueError(f"duplicate node ip {node.ip!r}")
                if not contains_host(network, node.ip):
                    raise ValueError(
                        f"node ip {node.ip!r} is outside the usable range of {self.subnet}"
                    )
                seen_ips.add(node.ip)

        if not any(node.role is Role.BOOTNODE for node in self.nodes):
            raise ValueError("at least one node must have the 'bootnode' role")

        return self

    def count_roles(self) -> dict[Role, int]:
        """Number of nodes per role. Every role is present in the result."""
        counts = dict.fromkeys(Role, 0)
        for node in self.nodes:
            counts[node.role] += 1
        return counts


def load_network_config(data: dict[str, Any]) -> NetworkConfig:
    """
    Build a NetworkConfig from plain data.

    Pydantic errors are converted into the orchestrator's ValidationError,
    reporting the first offending field.

    Raises:
        ValidationError: If the data does not describe a valid network.
    """
    try:
        return NetworkConfig.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "config"
        raise ValidationError(field, first["msg"], first.get("input")) from exc


def load_network_config_file(path: Path | str) -> NetworkConfig:
    """
    Load a network config from a YAML (or JSON) file.

    JSON is a subset of YAML, so one loader serves both.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValidationError: If the data fails validation.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValidationError("config", "file must contain a mapping", str(path))
    return load_network_config(data)
