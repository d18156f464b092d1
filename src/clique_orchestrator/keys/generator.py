"""
secp256k1 identity generation.

Ethereum clients derive every identity from one secp256k1 key pair:

- the account address is the low 20 bytes of keccak256(x || y)
- the devp2p node id is the 64-byte public key itself

Keccak-256 here is the original Keccak submission, not NIST SHA3-256.
The padding differs, so hashlib.sha3_256 gives a different digest.

References:
- https://ethereum.org/en/developers/docs/accounts/#account-creation
- https://github.com/ethereum/devp2p/blob/master/enr.md
"""

from __future__ import annotations

from typing import Final

from Crypto.Hash import keccak
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from clique_orchestrator.types import ValidationError

from .credentials import NodeCredentials, discovery_url

PRIVATE_KEY_SIZE: Final = 32
"""secp256k1 scalar size in bytes."""

UNCOMPRESSED_PUBKEY_SIZE: Final = 65
"""Uncompressed secp256k1 public key: 0x04 + 32-byte x + 32-byte y."""

ADDRESS_SIZE: Final = 20
"""Account addresses are the low 20 bytes of the keccak digest."""

_N: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
"""secp256k1 curve order."""


def keccak256(data: bytes) -> bytes:
    """Original Keccak-256 digest."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def public_key_to_address(uncompressed: bytes) -> str:
    """
    Derive the account address from an uncompressed public key.

    Args:
        uncompressed: 65-byte 0x04 || x || y encoding.

    Returns:
        40 lower-case hex chars.
    """
    if len(uncompressed) != UNCOMPRESSED_PUBKEY_SIZE or uncompressed[0] != 0x04:
        raise ValueError(f"Expected 65-byte uncompressed public key, got {len(uncompressed)} bytes")

    # Hash the 64-byte x||y (excluding the 0x04 prefix).
    return keccak256(uncompressed[1:])[-ADDRESS_SIZE:].hex()


class KeyGenerator:
    """
    Produces node credentials.

    Stateless. Each call draws fresh entropy from the OS through
    `cryptography`, so two calls never collide in practice.
    """

    def generate(self, ip: str, p2p_port: int) -> NodeCredentials:
        """
        Generate a fresh identity for a node reachable at ip:p2p_port.

        Args:
            ip: Static IP of the node inside its virtual network.
            p2p_port: devp2p port the node listens on.

        Returns:
            New credentials with a discovery URL bound to ip and port.
        """
        private_key = ec.generate_private_key(ec.SECP256K1())
        return self._credentials(private_key, ip, p2p_port)

    def from_private_key(self, private_key_hex: str, ip: str, p2p_port: int) -> NodeCredentials:
        """
        Rebuild credentials from an existing private key.

        Used to adopt keys generated elsewhere. Accepts an optional 0x prefix.

        Raises:
            ValidationError: If the key is not a valid secp256k1 scalar.
        """
        cleaned = private_key_hex.removeprefix("0x").lower()
        try:
            scalar = int(cleaned, 16)
        except ValueError as exc:
            raise ValidationError("private_key", "must be hex") from exc

        if len(cleaned) != PRIVATE_KEY_SIZE * 2 or not 0 < scalar < _N:
            raise ValidationError("private_key", "must be a 32-byte scalar in [1, n-1]")

        private_key = ec.derive_private_key(scalar, ec.SECP256K1())
        return self._credentials(private_key, ip, p2p_port)

    @staticmethod
    def _credentials(
        private_key: ec.EllipticCurvePrivateKey, ip: str, p2p_port: int
    ) -> NodeCredentials:
        uncompressed = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )
        public_key = uncompressed[1:].hex()
        scalar = private_key.private_numbers().private_value

        return NodeCredentials(
            private_key=scalar.to_bytes(PRIVATE_KEY_SIZE, "big").hex(),
            public_key=public_key,
            address=public_key_to_address(uncompressed),
            discovery_url=discovery_url(public_key, ip, p2p_port),
        )
