"""Network descriptions, resolved configurations and registry records."""

from .config import (
    ConsensusParams,
    NetworkConfig,
    NodeSpec,
    Role,
    load_network_config,
    load_network_config_file,
)
from .info import (
    ACTIVE_NETWORK_STATUSES,
    NetworkInfo,
    NetworkStatus,
    NodeRuntimeInfo,
    NodeStatus,
    ResolvedConfig,
    ResolvedNode,
)
from .subnet import contains_host, parse_subnet, subnets_overlap, usable_range

__all__ = [
    "ACTIVE_NETWORK_STATUSES",
    "ConsensusParams",
    "NetworkConfig",
    "NetworkInfo",
    "NetworkStatus",
    "NodeRuntimeInfo",
    "NodeSpec",
    "NodeStatus",
    "ResolvedConfig",
    "ResolvedNode",
    "Role",
    "contains_host",
    "load_network_config",
    "load_network_config_file",
    "parse_subnet",
    "subnets_overlap",
    "usable_range",
]
