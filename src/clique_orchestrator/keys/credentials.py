"""Node identity: key pair, account address and discovery URL."""

from __future__ import annotations

import re

from pydantic import field_validator

from clique_orchestrator.types import StrictBaseModel

DISCOVERY_SCHEME = "enode"
"""URL scheme of devp2p discovery URLs."""

_HEX_64 = re.compile(r"^[0-9a-f]{64}$")
_HEX_128 = re.compile(r"^[0-9a-f]{128}$")
_HEX_40 = re.compile(r"^[0-9a-f]{40}$")


def discovery_url(public_key: str, ip: str, p2p_port: int) -> str:
    """
    Build an enode URL.

    Format: enode://<128 hex chars of x||y>@<ip>:<port>
    """
    return f"{DISCOVERY_SCHEME}://{public_key}@{ip}:{p2p_port}"


class NodeCredentials(StrictBaseModel):
    """
    Identity of a single node.

    Generated once and never regenerated: the public key is the node's
    network identity and the address is its signer identity in the genesis.

    All values are lower-case hex without a 0x prefix.
    """

    private_key: str
    """32-byte secp256k1 scalar."""

    public_key: str
    """64-byte uncompressed point (x || y), without the 0x04 format byte."""

    address: str
    """Low-order 20 bytes of keccak256(public_key)."""

    discovery_url: str
    """enode://<public_key>@<ip>:<p2p_port>"""

    @field_validator("private_key")
    @classmethod
    def check_private_key(cls, v: str) -> str:
        """Private keys are exactly 64 hex chars."""
        if not _HEX_64.match(v):
            raise ValueError("private key must be 64 lower-case hex chars")
        return v

    @field_validator("public_key")
    @classmethod
    def check_public_key(cls, v: str) -> str:
        """Public keys are exactly 128 hex chars."""
        if not _HEX_128.match(v):
            raise ValueError("public key must be 128 lower-case hex chars")
        return v

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        """Addresses are exactly 40 hex chars."""
        if not _HEX_40.match(v):
            raise ValueError("address must be 40 lower-case hex chars")
        return v

    @property
    def prefixed_address(self) -> str:
        """The address with a 0x prefix, as clients print it."""
        return f"0x{self.address}"
