"""
Clique genesis document.

The genesis is the shared starting point of every node in a network.
Two nodes with different genesis documents compute different genesis
hashes and refuse to peer.

Clique encodes the initial signer set in the `extraData` header field:

    +----------------+----------------------------+-----------------+
    | vanity (32 B)  | signer addresses (20 B * n) | seal (65 B)     |
    +----------------+----------------------------+-----------------+

The vanity and seal are zero-filled in the genesis block.

References:
- https://eips.ethereum.org/EIPS/eip-225
"""

from __future__ import annotations

import json
from typing import Final

from pydantic import Field, field_validator

from clique_orchestrator.types import FrozenModel

VANITY_SIZE: Final = 32
"""Bytes of vanity data before the signer list."""

SEAL_SIZE: Final = 65
"""Bytes reserved for the secp256k1 seal after the signer list."""

ADDRESS_SIZE: Final = 20
"""Bytes per signer address."""

VALIDATOR_BALANCE: Final = "0x200000000000000000000000000000000000000000000000000000000000000"
"""Starting balance (hex wei) of every genesis signer."""

DEFAULT_GAS_LIMIT: Final = "0xa00000"
DEFAULT_DIFFICULTY: Final = "0x1"
ZERO_ADDRESS: Final = "0x" + "00" * ADDRESS_SIZE
ZERO_HASH: Final = "0x" + "00" * 32
GENESIS_TIMESTAMP: Final = "0x5c51a607"


def encode_extra_data(addresses: list[str]) -> str:
    """
    Encode a signer list as Clique extraData.

    Addresses keep their input order. Every node reads the same genesis,
    so the order only has to be consistent, not sorted.
    """
    body = "".join(addr.removeprefix("0x").lower() for addr in addresses)
    return "0x" + "00" * VANITY_SIZE + body + "00" * SEAL_SIZE


def decode_validators(extra_data: str) -> list[str]:
    """
    Split the middle segment of extraData back into 20-byte addresses.

    Raises:
        ValueError: If the length does not match 32 + 20*n + 65 bytes.
    """
    raw = bytes.fromhex(extra_data.removeprefix("0x"))
    middle = len(raw) - VANITY_SIZE - SEAL_SIZE
    if middle < 0 or middle % ADDRESS_SIZE != 0:
        raise ValueError(
            f"extraData of {len(raw)} bytes is not 32 + 20*n + 65 bytes"
        )

    signers = raw[VANITY_SIZE : VANITY_SIZE + middle]
    return [
        signers[i : i + ADDRESS_SIZE].hex() for i in range(0, len(signers), ADDRESS_SIZE)
    ]


class CliqueConfig(FrozenModel):
    """Clique consensus parameters."""

    period: int
    """Seconds between blocks."""

    epoch: int
    """Blocks between checkpoints."""


class ChainConfig(FrozenModel):
    """The `config` object of the genesis. Every fork is active from block 0."""

    chain_id: int
    homestead_block: int = 0
    eip150_block: int = 0
    eip155_block: int = 0
    eip158_block: int = 0
    byzantium_block: int = 0
    constantinople_block: int = 0
    petersburg_block: int = 0
    istanbul_block: int = 0
    berlin_block: int = 0
    london_block: int = 0
    clique: CliqueConfig


class AllocEntry(FrozenModel):
    """A pre-funded account."""

    balance: str
    """Hex wei string."""


class GenesisDocument(FrozenModel):
    """
    The genesis JSON artifact.

    Derived from the network config and the signer identities, and frozen
    once built. `add_validator` returns an extended copy.
    """

    config: ChainConfig
    difficulty: str = DEFAULT_DIFFICULTY
    gas_limit: str = DEFAULT_GAS_LIMIT
    extra_data: str
    alloc: dict[str, AllocEntry] = Field(default_factory=dict)
    coinbase: str = ZERO_ADDRESS
    mix_hash: str = ZERO_HASH
    nonce: str = "0x0"
    timestamp: str = GENESIS_TIMESTAMP

    @field_validator("extra_data")
    @classmethod
    def check_extra_data(cls, v: str) -> str:
        """extraData must decode to 32 + 20*n + 65 bytes."""
        decode_validators(v)
        return v

    @property
    def validators(self) -> list[str]:
        """Signer addresses in extraData order."""
        return decode_validators(self.extra_data)

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize with camelCase keys, as clients expect."""
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=indent)
