"""
Orchestrator settings.

Settings describe the host: where files and the registry live, how to reach
the container engine, and the defaults used when a network config leaves
something out. They are separate from network configs, which describe one
network each.

Example YAML::

    dataDir: /srv/clique
    dockerSocket: /var/run/docker.sock
    image: hyperledger/besu:24.1.0
    baseRpcPort: 8545
    baseP2pPort: 30303
    validation:
      checkChainId: false
    retry:
      attempts: 8
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

import pydantic
import yaml
from pydantic import Field

from clique_orchestrator.allocation import (
    DEFAULT_IP_OFFSET,
    DEFAULT_P2P_PORT,
    DEFAULT_RPC_PORT,
    AddressAllocator,
)
from clique_orchestrator.orchestrator import NetworkOrchestrator
from clique_orchestrator.provisioning import DEFAULT_IMAGE, NodeProvisioner
from clique_orchestrator.registry import InMemoryRegistry, NetworkRegistry, SQLiteRegistry
from clique_orchestrator.runtime import DockerEngineRuntime, RetryPolicy
from clique_orchestrator.runtime.base import ContainerRuntime
from clique_orchestrator.runtime.docker import DEFAULT_SOCKET
from clique_orchestrator.types import FrozenModel, ValidationError
from clique_orchestrator.validation import ConflictValidator, RoleLimits, ValidationOptions

DATA_DIR_ENV: Final = "CLIQUE_DATA_DIR"
"""Overrides the default data directory."""

REGISTRY_FILE: Final = "registry.db"
"""Registry file name inside the data directory."""

IN_MEMORY: Final = ":memory:"
"""Registry path that selects the process-local registry."""


def default_data_dir() -> Path:
    """The data directory used when settings do not name one."""
    return Path(os.environ.get(DATA_DIR_ENV, Path.home() / ".clique-orchestrator"))


class OrchestratorSettings(FrozenModel):
    """Host-level settings of the orchestrator."""

    data_dir: Path = Field(default_factory=default_data_dir)
    """Root of network directories (genesis and key files)."""

    registry_path: Path | None = None
    """SQLite registry file. Defaults to registry.db inside data_dir."""

    docker_socket: str = DEFAULT_SOCKET
    """Unix socket of the Docker engine."""

    image: str = DEFAULT_IMAGE
    """Client image every node runs."""

    base_rpc_port: int = Field(default=DEFAULT_RPC_PORT, ge=1, le=65535)
    base_p2p_port: int = Field(default=DEFAULT_P2P_PORT, ge=1, le=65535)

    ip_offset: int = Field(default=DEFAULT_IP_OFFSET, ge=1)
    """Host offset of the first auto-assigned address in a subnet."""

    validation: ValidationOptions = Field(default_factory=ValidationOptions)
    role_limits: RoleLimits = Field(default_factory=RoleLimits)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> OrchestratorSettings:
        """
        Load settings from a YAML file.

        An empty file gives the defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            ValidationError: If a setting is invalid.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValidationError("settings", "file must contain a mapping", str(path))
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "settings"
            raise ValidationError(field, first["msg"], first.get("input")) from exc

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def open_registry(self) -> NetworkRegistry:
        """Open the registry these settings point at."""
        path = self.registry_path or self.data_dir / REGISTRY_FILE
        if str(path) == IN_MEMORY:
            return InMemoryRegistry()
        return SQLiteRegistry(path)

    def open_runtime(self) -> DockerEngineRuntime:
        """Connect to the Docker engine."""
        return DockerEngineRuntime(self.docker_socket)

    def build_orchestrator(
        self, registry: NetworkRegistry, runtime: ContainerRuntime
    ) -> NetworkOrchestrator:
        """Wire an orchestrator with every component configured from these settings."""
        allocator = AddressAllocator(
            ip_offset=self.ip_offset,
            base_rpc_port=self.base_rpc_port,
            base_p2p_port=self.base_p2p_port,
        )
        validator = ConflictValidator(
            registry, runtime, allocator, options=self.validation, limits=self.role_limits
        )
        return NetworkOrchestrator(
            registry,
            runtime,
            self.data_dir,
            validator=validator,
            allocator=allocator,
            provisioner=NodeProvisioner(self.image),
            retry=self.retry,
        )
