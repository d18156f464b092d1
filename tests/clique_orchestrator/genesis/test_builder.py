"""Tests for GenesisBuilder."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from clique_orchestrator.genesis import (
    VALIDATOR_BALANCE,
    GenesisBuilder,
    read_genesis,
    write_genesis,
)
from clique_orchestrator.keys import KeyGenerator, NodeCredentials
from clique_orchestrator.network import ConsensusParams
from clique_orchestrator.types import ValidationError


@pytest.fixture
def builder() -> GenesisBuilder:
    """Genesis builder."""
    return GenesisBuilder()


@pytest.fixture
def signers(keys: KeyGenerator) -> list[NodeCredentials]:
    """Three fresh signer identities."""
    return [keys.generate(f"172.20.0.{10 + i}", 30303 + i) for i in range(3)]


class TestBuild:
    """Building a genesis from identities."""

    def test_signers_in_order(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """extraData lists every signer in input order."""
        genesis = builder.build(1337, signers)
        assert genesis.validators == [s.address for s in signers]

    def test_signers_are_funded(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """Every signer has the validator balance."""
        genesis = builder.build(1337, signers)
        assert {address: entry.balance for address, entry in genesis.alloc.items()} == {
            s.address: VALIDATOR_BALANCE for s in signers
        }

    def test_consensus_params_are_copied(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """Period and epoch come from configuration."""
        genesis = builder.build(42, signers, consensus=ConsensusParams(period=2, epoch=100))

        assert genesis.config.chain_id == 42
        assert genesis.config.clique.period == 2
        assert genesis.config.clique.epoch == 100

    def test_prealloc(self, builder: GenesisBuilder, signers: list[NodeCredentials]) -> None:
        """Extra accounts are funded, with balances normalized to 0x hex."""
        funded = "0x" + "ab" * 20
        genesis = builder.build(1337, signers[:1], prealloc={funded: "de0b6b3a7640000"})

        assert genesis.alloc["ab" * 20].balance == "0xde0b6b3a7640000"
        assert genesis.validators == [signers[0].address]

    def test_no_signers_is_allowed(self, builder: GenesisBuilder) -> None:
        """An empty signer list still gives a well-formed document."""
        genesis = builder.build(1337, [])
        assert genesis.validators == []
        assert genesis.alloc == {}

    @pytest.mark.parametrize("chain_id", [0, -1])
    def test_rejects_non_positive_chain_id(self, builder: GenesisBuilder, chain_id: int) -> None:
        """Chain ids start at 1."""
        with pytest.raises(ValidationError):
            builder.build(chain_id, [])

    def test_rejects_duplicate_signers(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """The same identity cannot sign twice."""
        with pytest.raises(ValidationError, match="unique"):
            builder.build(1337, [signers[0], signers[0]])

    @pytest.mark.parametrize(
        "prealloc",
        [
            {"0x1234": "0x1"},
            {"0x" + "ab" * 20: "not-hex"},
        ],
    )
    def test_rejects_malformed_prealloc(
        self, builder: GenesisBuilder, prealloc: dict[str, str]
    ) -> None:
        """Addresses must be 20 bytes and balances hex."""
        with pytest.raises(ValidationError):
            builder.build(1337, [], prealloc=prealloc)

    def test_rejects_prealloc_of_a_signer(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """A signer is funded once."""
        with pytest.raises(ValidationError, match="duplicate"):
            builder.build(1337, signers[:1], prealloc={signers[0].address: "0x1"})

    def test_build_for_addresses(self, builder: GenesisBuilder) -> None:
        """Bare addresses, prefixed or not, give the same document as identities."""
        genesis = builder.build_for_addresses(1337, ["0x" + "AA" * 20, "bb" * 20])
        assert genesis.validators == ["aa" * 20, "bb" * 20]


class TestAddValidator:
    """Extending the signer list of an initialized genesis."""

    def test_appends_before_seal(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """The new signer goes last and the layout stays valid."""
        genesis = builder.build(1337, signers[:2])
        extended = builder.add_validator(genesis, signers[2].prefixed_address)

        assert extended.validators == [s.address for s in signers]
        raw = bytes.fromhex(extended.extra_data[2:])
        assert len(raw) == 32 + 20 * 3 + 65
        assert raw[-65:] == bytes(65)
        assert extended.alloc[signers[2].address].balance == VALIDATOR_BALANCE

    def test_input_is_untouched(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """A new document is returned."""
        genesis = builder.build(1337, signers[:1])
        before = genesis.model_dump()

        extended = builder.add_validator(genesis, signers[1].address)

        assert genesis.validators == [signers[0].address]
        assert genesis.model_dump() == before
        assert extended.config is not genesis.config
        assert extended.alloc[signers[0].address] is not genesis.alloc[signers[0].address]

    def test_documents_are_frozen(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """Neither the extended copy nor its parts accept assignment."""
        extended = builder.add_validator(builder.build(1337, signers[:1]), signers[1].address)

        with pytest.raises(PydanticValidationError):
            extended.extra_data = "0x00"  # type: ignore[misc]
        with pytest.raises(PydanticValidationError):
            extended.config.chain_id = 99  # type: ignore[misc]
        with pytest.raises(PydanticValidationError):
            extended.alloc[signers[0].address].balance = "0x0"  # type: ignore[misc]

    def test_first_signer_of_empty_genesis(self, builder: GenesisBuilder) -> None:
        """Adding to a signerless genesis works."""
        genesis = builder.add_validator(builder.build(1337, []), "cc" * 20)
        assert genesis.validators == ["cc" * 20]

    def test_rejects_existing_signer(
        self, builder: GenesisBuilder, signers: list[NodeCredentials]
    ) -> None:
        """A signer cannot be added twice."""
        genesis = builder.build(1337, signers[:1])
        with pytest.raises(ValidationError, match="already a signer"):
            builder.add_validator(genesis, "0x" + signers[0].address.upper())

    def test_rejects_malformed_address(self, builder: GenesisBuilder) -> None:
        """Only 20-byte hex addresses are accepted."""
        with pytest.raises(ValidationError):
            builder.add_validator(builder.build(1337, []), "0xnothex")


def test_file_round_trip(
    tmp_path: Path, builder: GenesisBuilder, signers: list[NodeCredentials]
) -> None:
    """write_genesis and read_genesis preserve the document."""
    genesis = builder.build(1337, signers)
    path = tmp_path / "net" / "genesis.json"

    write_genesis(genesis, path)

    assert read_genesis(path) == genesis
