"""Clique genesis: document model, extraData codec and builder."""

from .builder import GenesisBuilder, read_genesis, write_genesis
from .document import (
    VALIDATOR_BALANCE,
    AllocEntry,
    ChainConfig,
    CliqueConfig,
    GenesisDocument,
    decode_validators,
    encode_extra_data,
)

__all__ = [
    "VALIDATOR_BALANCE",
    "AllocEntry",
    "ChainConfig",
    "CliqueConfig",
    "GenesisBuilder",
    "GenesisDocument",
    "decode_validators",
    "encode_extra_data",
    "read_genesis",
    "write_genesis",
]
