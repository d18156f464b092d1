"""
Role profiles.

Each role maps to exactly one profile. The mapping is an exhaustive match
over the closed Role enum: a new role fails type checking until it is given
a profile here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from clique_orchestrator.network.config import Role


class Api(str, Enum):
    """JSON-RPC API groups the client can expose."""

    ETH = "ETH"
    NET = "NET"
    WEB3 = "WEB3"
    ADMIN = "ADMIN"
    CLIQUE = "CLIQUE"
    MINER = "MINER"
    DEBUG = "DEBUG"
    TXPOOL = "TXPOOL"


BASE_APIS = (Api.ETH, Api.NET, Api.WEB3)
"""Read-only APIs every node exposes."""


@dataclass(frozen=True, slots=True)
class RoleProfile:
    """What a role turns on in the client."""

    apis: tuple[Api, ...]
    """RPC allow-list, in flag order."""

    mining: bool
    """Whether the node seals blocks."""

    signer: bool
    """Whether the node's address goes into the genesis signer list."""

    bootstrap: bool
    """Whether other nodes dial this node first."""

    @property
    def api_flag(self) -> str:
        """Comma-separated allow-list."""
        return ",".join(api.value for api in self.apis)


def profile_for(role: Role) -> RoleProfile:
    """The profile of a role."""
    match role:
        case Role.BOOTNODE:
            return RoleProfile(
                apis=(*BASE_APIS, Api.ADMIN), mining=False, signer=False, bootstrap=True
            )
        case Role.VALIDATOR:
            return RoleProfile(
                apis=(*BASE_APIS, Api.CLIQUE, Api.MINER, Api.DEBUG, Api.TXPOOL),
                mining=True,
                signer=True,
                bootstrap=False,
            )
        case Role.RPC:
            return RoleProfile(
                apis=(*BASE_APIS, Api.TXPOOL), mining=False, signer=False, bootstrap=False
            )
        case Role.PLAIN:
            return RoleProfile(apis=BASE_APIS, mining=False, signer=False, bootstrap=False)
        case _:
            assert_never(role)
