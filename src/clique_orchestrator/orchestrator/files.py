"""
On-disk artifacts of a network.

    <data_dir>/<network_id>/genesis.json
    <data_dir>/<network_id>/nodes/<node_id>/{key,key.pub,address,enode}

The network directory is what containers see at /data.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from clique_orchestrator.genesis import GenesisDocument, write_genesis
from clique_orchestrator.keys import NodeCredentials, write_identity

logger = logging.getLogger(__name__)

GENESIS_FILE = "genesis.json"
NODES_DIR = "nodes"


class NetworkFiles:
    """Owns creation and removal of network directories."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir

    def network_dir(self, network_id: str) -> Path:
        """Host directory of a network."""
        return self.data_dir / network_id

    def genesis_path(self, network_id: str) -> Path:
        """Genesis file of a network."""
        return self.network_dir(network_id) / GENESIS_FILE

    def node_dir(self, network_id: str, node_id: str) -> Path:
        """Identity directory of a node."""
        return self.network_dir(network_id) / NODES_DIR / node_id

    def write_genesis(self, network_id: str, genesis: GenesisDocument) -> Path:
        """Write genesis.json and return its path."""
        path = self.genesis_path(network_id)
        write_genesis(genesis, path)
        return path

    def write_identity(self, network_id: str, node_id: str, creds: NodeCredentials) -> Path:
        """Write a node's identity files and return the directory."""
        directory = self.node_dir(network_id, node_id)
        write_identity(directory, creds)
        # The client creates its database under the node directory.
        (directory / "data").mkdir(exist_ok=True)
        return directory

    def remove_node(self, network_id: str, node_id: str) -> None:
        """Delete a node directory. Missing directories are fine."""
        directory = self.node_dir(network_id, node_id)
        if directory.exists():
            shutil.rmtree(directory)

    def remove_network(self, network_id: str) -> None:
        """Delete a network directory. Missing directories are fine."""
        directory = self.network_dir(network_id)
        if directory.exists():
            shutil.rmtree(directory)
            logger.debug("Removed %s", directory)
