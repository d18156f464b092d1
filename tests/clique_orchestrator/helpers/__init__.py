"""Test helpers for clique_orchestrator unit tests."""

from __future__ import annotations

from .builders import make_config, make_config_data, make_network_info, make_nodes
from .mocks import FakeContainer, FakeNetwork, InMemoryRuntime

__all__ = [
    "FakeContainer",
    "FakeNetwork",
    "InMemoryRuntime",
    "make_config",
    "make_config_data",
    "make_network_info",
    "make_nodes",
]
