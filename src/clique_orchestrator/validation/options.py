"""Validation switches and role maxima."""

from __future__ import annotations

from pydantic import Field

from clique_orchestrator.network.config import Role
from clique_orchestrator.types import FrozenModel


class ValidationOptions(FrozenModel):
    """
    Which conflict checks run. All of them by default.

    Chain id reuse is only operationally dangerous (peers of two networks
    with the same id may handshake), so it can be turned off for hosts that
    deliberately run copies of one chain.
    """

    check_name: bool = True
    check_chain_id: bool = True
    check_subnet: bool = True
    check_ports: bool = True
    check_runtime_network: bool = True
    warn_public_chain_ids: bool = True
    """Log a warning when the chain id belongs to a public network."""


class RoleLimits(FrozenModel):
    """Maximum number of nodes per role in one network."""

    bootnode: int = Field(default=1, ge=1)
    validator: int = Field(default=16, ge=0)
    rpc: int = Field(default=8, ge=0)
    plain: int = Field(default=32, ge=0)

    def limit_for(self, role: Role) -> int:
        """Maximum for one role."""
        match role:
            case Role.BOOTNODE:
                return self.bootnode
            case Role.VALIDATOR:
                return self.validator
            case Role.RPC:
                return self.rpc
            case Role.PLAIN:
                return self.plain
