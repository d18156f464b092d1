"""Building and extending Clique genesis documents."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from pathlib import Path

from clique_orchestrator.keys import NodeCredentials
from clique_orchestrator.network.config import ConsensusParams
from clique_orchestrator.types import ValidationError

from .document import (
    SEAL_SIZE,
    VALIDATOR_BALANCE,
    AllocEntry,
    ChainConfig,
    CliqueConfig,
    GenesisDocument,
    encode_extra_data,
)

logger = logging.getLogger(__name__)

_ADDRESS = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
_BALANCE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def _normalize_address(address: str, field: str) -> str:
    if not _ADDRESS.match(address):
        raise ValidationError(field, "must be a 20-byte hex address", address)
    return address.removeprefix("0x").lower()


def _normalize_balance(balance: str, field: str) -> str:
    if not _BALANCE.match(balance):
        raise ValidationError(field, "must be a hex wei amount", balance)
    return balance if balance.startswith("0x") else f"0x{balance}"


class GenesisBuilder:
    """
    Builds the genesis document from the signer identities.

    Consensus parameters come from configuration and are never computed.
    """

    def build(
        self,
        chain_id: int,
        validators: Sequence[NodeCredentials],
        consensus: ConsensusParams | None = None,
        prealloc: dict[str, str] | None = None,
    ) -> GenesisDocument:
        """
        Create the genesis for a chain.

        Args:
            chain_id: Chain id written into `config.chainId`.
            validators: Signers, in the order they appear in extraData.
            consensus: Clique period and epoch. Defaults apply when omitted.
            prealloc: Extra funded accounts (address to hex wei balance).

        Returns:
            A genesis whose extraData holds every signer address and whose
            alloc funds every signer.

        Raises:
            ValidationError: On a malformed or duplicated address or balance.
        """
        return self.build_for_addresses(
            chain_id, [creds.address for creds in validators], consensus, prealloc
        )

    def build_for_addresses(
        self,
        chain_id: int,
        addresses: Sequence[str],
        consensus: ConsensusParams | None = None,
        prealloc: dict[str, str] | None = None,
    ) -> GenesisDocument:
        """
        Same as `build`, from bare signer addresses (optional 0x prefix).

        Used when the identities live elsewhere, for example keys generated
        by another tool.
        """
        if chain_id <= 0:
            raise ValidationError("chain_id", "must be a positive integer", chain_id)

        consensus = consensus or ConsensusParams()
        addresses = [
            _normalize_address(address, f"validators[{i}]") for i, address in enumerate(addresses)
        ]
        if len(set(addresses)) != len(addresses):
            raise ValidationError("validators", "signer addresses must be unique")

        alloc = {address: AllocEntry(balance=VALIDATOR_BALANCE) for address in addresses}

        for raw_address, raw_balance in (prealloc or {}).items():
            field = f"prealloc.{raw_address}"
            address = _normalize_address(raw_address, field)
            if address in alloc:
                raise ValidationError(field, "duplicate funded address", raw_address)
            alloc[address] = AllocEntry(balance=_normalize_balance(raw_balance, field))

        if not addresses:
            logger.warning("Genesis for chain %d has no signers; no block can be sealed", chain_id)

        return GenesisDocument(
            config=ChainConfig(
                chain_id=chain_id,
                clique=CliqueConfig(period=consensus.period, epoch=consensus.epoch),
            ),
            extra_data=encode_extra_data(addresses),
            alloc=alloc,
        )

    def add_validator(self, genesis: GenesisDocument, address: str) -> GenesisDocument:
        """
        Append a signer to an already-initialized genesis.

        The address goes between the existing signer block and the seal
        suffix. The vanity prefix and seal keep their fixed 32 and 65 bytes.

        Returns:
            A new document. The input is left untouched.

        Raises:
            ValidationError: If the address is malformed or already a signer.
        """
        normalized = _normalize_address(address, "address")
        if normalized in genesis.validators:
            raise ValidationError("address", "already a signer", address)

        raw = genesis.extra_data.removeprefix("0x")
        seal_start = len(raw) - SEAL_SIZE * 2
        data = genesis.model_dump(mode="json")
        data["extra_data"] = "0x" + raw[:seal_start] + normalized + raw[seal_start:]
        data["alloc"].setdefault(normalized, {"balance": VALIDATOR_BALANCE})

        # Rebuilt from plain data: nothing is shared with the input.
        extended = GenesisDocument.model_validate(data)
        logger.info(
            "Added signer %s to genesis of chain %d (%d signers)",
            normalized,
            extended.config.chain_id,
            len(extended.validators),
        )
        return extended


def write_genesis(genesis: GenesisDocument, path: Path) -> None:
    """Write the genesis JSON, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(genesis.to_json(), encoding="utf-8")


def read_genesis(path: Path) -> GenesisDocument:
    """Load a genesis JSON written by `write_genesis`. Unknown keys are rejected."""
    return GenesisDocument.model_validate_json(path.read_text(encoding="utf-8"))
