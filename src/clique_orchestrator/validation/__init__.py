"""Conflict detection against already-provisioned networks."""

from .conflicts import Conflict, ConflictKind
from .options import RoleLimits, ValidationOptions
from .suggestions import (
    ALTERNATE_SUBNETS,
    CHAIN_ID_RANGE,
    MAX_SUGGESTIONS,
    suggest_chain_ids,
    suggest_names,
    suggest_ports,
    suggest_subnets,
)
from .validator import PUBLIC_CHAIN_IDS, ConflictValidator

__all__ = [
    "ALTERNATE_SUBNETS",
    "CHAIN_ID_RANGE",
    "MAX_SUGGESTIONS",
    "PUBLIC_CHAIN_IDS",
    "Conflict",
    "ConflictKind",
    "ConflictValidator",
    "RoleLimits",
    "ValidationOptions",
    "suggest_chain_ids",
    "suggest_names",
    "suggest_ports",
    "suggest_subnets",
]
