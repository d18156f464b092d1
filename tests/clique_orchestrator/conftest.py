"""
Shared pytest fixtures for clique_orchestrator tests.

Every orchestrator fixture runs against the in-memory registry and the
in-memory runtime, with retries that never sleep.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from clique_orchestrator.keys import KeyGenerator
from clique_orchestrator.orchestrator import NetworkOrchestrator
from clique_orchestrator.registry import InMemoryRegistry
from clique_orchestrator.runtime import RetryPolicy
from tests.clique_orchestrator.helpers import InMemoryRuntime

FAST_RETRY = RetryPolicy(attempts=3, base_delay=0.0, max_delay=0.0)
"""Three attempts, no backoff."""


async def no_sleep(_: float) -> None:
    """Retry sleep that returns immediately."""


@pytest.fixture
def keys() -> KeyGenerator:
    """Key generator."""
    return KeyGenerator()


@pytest.fixture
def registry() -> InMemoryRegistry:
    """Empty in-memory registry."""
    return InMemoryRegistry()


@pytest.fixture
def runtime() -> InMemoryRuntime:
    """Fake engine with no injected failures."""
    return InMemoryRuntime()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Host directory for genesis and key files."""
    return tmp_path / "networks"


@pytest.fixture
def orchestrator(
    registry: InMemoryRegistry, runtime: InMemoryRuntime, data_dir: Path
) -> NetworkOrchestrator:
    """Orchestrator over the in-memory registry and runtime."""
    return NetworkOrchestrator(registry, runtime, data_dir, retry=FAST_RETRY, sleep=no_sleep)
