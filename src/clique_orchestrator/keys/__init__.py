"""Node identities: secp256k1 keys, addresses, discovery URLs and key files."""

from .credentials import NodeCredentials, discovery_url
from .files import read_identity, write_identity
from .generator import KeyGenerator, keccak256, public_key_to_address

__all__ = [
    "KeyGenerator",
    "NodeCredentials",
    "discovery_url",
    "keccak256",
    "public_key_to_address",
    "read_identity",
    "write_identity",
]
