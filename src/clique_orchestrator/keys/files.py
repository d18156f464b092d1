"""
Identity files.

Each node directory holds four plain-text files, one opaque value each:

    key       private key (hex, no prefix)
    key.pub   public key (hex, no prefix)
    address   account address (hex, no prefix)
    enode     discovery URL

The client reads `key` through --node-private-key-file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

from .credentials import NodeCredentials

PRIVATE_KEY_FILE: Final = "key"
PUBLIC_KEY_FILE: Final = "key.pub"
ADDRESS_FILE: Final = "address"
DISCOVERY_URL_FILE: Final = "enode"


def write_identity(directory: Path, credentials: NodeCredentials) -> None:
    """Write the four identity files into directory, creating it if needed."""
    directory.mkdir(parents=True, exist_ok=True)

    (directory / PRIVATE_KEY_FILE).write_text(credentials.private_key, encoding="utf-8")
    (directory / PUBLIC_KEY_FILE).write_text(credentials.public_key, encoding="utf-8")
    (directory / ADDRESS_FILE).write_text(credentials.address, encoding="utf-8")
    (directory / DISCOVERY_URL_FILE).write_text(credentials.discovery_url, encoding="utf-8")

    # Only the owner may read the private key.
    (directory / PRIVATE_KEY_FILE).chmod(0o600)


def read_identity(directory: Path) -> NodeCredentials:
    """
    Read credentials back from a node directory.

    Raises:
        FileNotFoundError: If any of the four files is missing.
    """

    def read(name: str) -> str:
        return (directory / name).read_text(encoding="utf-8").strip()

    return NodeCredentials(
        private_key=read(PRIVATE_KEY_FILE),
        public_key=read(PUBLIC_KEY_FILE),
        address=read(ADDRESS_FILE),
        discovery_url=read(DISCOVERY_URL_FILE),
    )
