"""
Container runtime capability.

The orchestrator never talks to a container engine directly. It consumes
this Protocol, which a Docker adapter implements for real hosts and an
in-memory fake implements for tests.

Failures are split in two:

- RuntimeUnavailable: the engine could not be reached. Transient.
- RuntimeRejected: the engine refused the operation. Semantic.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from pydantic import Field

from clique_orchestrator.types import CamelModel, StrictBaseModel


class ResourceState(str, Enum):
    """Lifecycle state reported by the engine."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    REMOVING = "removing"
    EXITED = "exited"
    DEAD = "dead"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> ResourceState:
        """Map an engine status string, falling back to UNKNOWN."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


class PortBinding(StrictBaseModel):
    """One published port. Host and container port are the same number."""

    port: int
    protocol: str = "tcp"

    @property
    def key(self) -> str:
        """Engine notation: `8545/tcp`."""
        return f"{self.port}/{self.protocol}"


class Mount(StrictBaseModel):
    """A host path bound into the container."""

    source: str
    target: str
    read_only: bool = True


class ContainerSpec(StrictBaseModel):
    """Everything the runtime needs to create and start one node."""

    name: str
    image: str
    command: list[str]
    env: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    ports: list[PortBinding] = Field(default_factory=list)
    network: str
    """Name of the virtual network to attach to."""

    ip: str
    """Static address on that network."""

    mounts: list[Mount] = Field(default_factory=list)


class ResourceInfo(CamelModel):
    """What the engine reports about one container."""

    handle: str
    name: str
    state: ResourceState
    ip: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class ContainerRuntime(Protocol):
    """
    Protocol for the container engine.

    Handles are opaque strings chosen by the engine.
    """

    async def ensure_image(self, image: str) -> None:
        """Make the image available locally, pulling it if needed."""
        ...

    async def create_virtual_network(
        self, name: str, subnet: str, labels: dict[str, str]
    ) -> str:
        """
        Create a private bridge network.

        Returns:
            The network handle.

        Raises:
            RuntimeRejected: If the name is taken or the subnet is in use.
        """
        ...

    async def find_virtual_network(self, name: str) -> str | None:
        """Handle of the network with exactly this name, if any."""
        ...

    async def remove_virtual_network(self, handle: str) -> None:
        """
        Remove a network.

        Raises:
            ResourceNotFound: If it does not exist.
            ResourceBusy: If containers are still attached.
        """
        ...

    async def create_resource(self, spec: ContainerSpec) -> str:
        """
        Create and start a container.

        Returns:
            The container handle.
        """
        ...

    async def start_resource(self, handle: str) -> None:
        """Start a stopped container. Starting a running one is a no-op."""
        ...

    async def stop_resource(self, handle: str) -> None:
        """Stop a container. Stopping a stopped one is a no-op."""
        ...

    async def remove_resource(self, handle: str, force: bool = False) -> None:
        """
        Remove a container.

        Raises:
            ResourceNotFound: If it does not exist.
            ResourceBusy: If a removal is already in progress.
        """
        ...

    async def list_resources(self, labels: dict[str, str]) -> list[ResourceInfo]:
        """Every container carrying all of the given labels, running or not."""
        ...

    async def inspect_resource(self, handle: str) -> ResourceInfo:
        """
        Current state of one container.

        Raises:
            ResourceNotFound: If it does not exist.
        """
        ...

    async def resource_logs(self, handle: str, tail: int | None = None) -> str:
        """
        Output of one container, stdout and stderr interleaved.

        Args:
            handle: Container handle.
            tail: Number of trailing lines. Everything when omitted.

        Raises:
            ResourceNotFound: If it does not exist.
        """
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
