"""Tests for network directories on disk."""

from __future__ import annotations

import json
from pathlib import Path

from clique_orchestrator.genesis import GenesisBuilder
from clique_orchestrator.keys import KeyGenerator, read_identity
from clique_orchestrator.orchestrator import NetworkFiles


def test_layout(tmp_path: Path, keys: KeyGenerator) -> None:
    """Genesis at the network root, identities under nodes/."""
    files = NetworkFiles(tmp_path)
    creds = keys.generate("172.20.0.10", 30303)

    genesis_path = files.write_genesis("dev-net", GenesisBuilder().build(1337, [creds]))
    node_dir = files.write_identity("dev-net", "boot", creds)

    assert genesis_path == tmp_path / "dev-net" / "genesis.json"
    assert json.loads(genesis_path.read_text())["config"]["chainId"] == 1337
    assert node_dir == tmp_path / "dev-net" / "nodes" / "boot"
    assert (node_dir / "data").is_dir()
    assert read_identity(node_dir) == creds


def test_removal(tmp_path: Path, keys: KeyGenerator) -> None:
    """Node and network directories are removed, missing ones are ignored."""
    files = NetworkFiles(tmp_path)
    files.write_identity("dev-net", "boot", keys.generate("172.20.0.10", 30303))
    files.write_identity("dev-net", "signer-1", keys.generate("172.20.0.11", 30304))

    files.remove_node("dev-net", "signer-1")
    assert not files.node_dir("dev-net", "signer-1").exists()
    assert files.node_dir("dev-net", "boot").exists()

    files.remove_network("dev-net")
    assert not files.network_dir("dev-net").exists()

    files.remove_node("dev-net", "ghost")
    files.remove_network("ghost-net")
