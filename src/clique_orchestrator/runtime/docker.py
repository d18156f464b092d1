"""
Docker Engine adapter.

Talks to the Docker Engine REST API over its unix socket with httpx.
No Docker SDK is involved: the handful of endpoints the orchestrator needs
map directly onto the ContainerRuntime protocol.

References:
- https://docs.docker.com/engine/api/latest/
"""

from __future__ import annotations

import json
import logging
from typing import Any, Final

import httpx

from clique_orchestrator.types import (
    ResourceBusy,
    ResourceNotFound,
    RuntimeRejected,
    RuntimeUnavailable,
)

from .base import ContainerSpec, ResourceInfo, ResourceState

logger = logging.getLogger(__name__)

DEFAULT_SOCKET: Final = "/var/run/docker.sock"
"""Where the engine listens on Linux hosts."""

DEFAULT_TIMEOUT: Final = 60.0
"""Per-request timeout in seconds. Image pulls are not bounded."""

STOP_GRACE_SECONDS: Final = 10
"""Seconds the engine waits for SIGTERM before sending SIGKILL."""

_BUSY_MARKERS: Final = ("already in progress", "active endpoints")
"""Engine messages that mean "try again shortly"."""

_FRAME_HEADER_SIZE: Final = 8


def demux_log_stream(raw: bytes) -> str:
    """
    Join the payloads of a multiplexed log stream.

    Each frame is an 8-byte header followed by the payload:

        +-----------+-----------+------------------------+
        | stream    | 3 zero B  | payload size (u32, BE) |
        +-----------+-----------+------------------------+

    Stream 1 is stdout and 2 is stderr. A body that does not start with a
    frame header came from a TTY container and is returned as is.
    """
    if not raw or raw[0] not in (0, 1, 2) or raw[1:4] != b"\x00\x00\x00":
        return raw.decode("utf-8", errors="replace")

    chunks: list[bytes] = []
    offset = 0
    while offset + _FRAME_HEADER_SIZE <= len(raw):
        size = int.from_bytes(raw[offset + 4 : offset + _FRAME_HEADER_SIZE], "big")
        start = offset + _FRAME_HEADER_SIZE
        chunks.append(raw[start : start + size])
        offset = start + size
    return b"".join(chunks).decode("utf-8", errors="replace")


class DockerEngineRuntime:
    """
    ContainerRuntime implementation backed by the Docker Engine API.

    Connection-level failures become RuntimeUnavailable. Error responses
    become RuntimeRejected, or one of its subclasses when the status code
    says more (404 is ResourceNotFound, an in-progress removal is ResourceBusy).
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Args:
            socket_path: Unix socket of the engine.
            transport: Overrides the socket transport. Tests pass an
                httpx.MockTransport here.
            timeout: Per-request timeout in seconds.
        """
        self._socket_path = socket_path
        self._client = httpx.AsyncClient(
            transport=transport or httpx.AsyncHTTPTransport(uds=socket_path),
            base_url="http://docker",
            timeout=timeout,
        )

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    async def ensure_image(self, image: str) -> None:
        """Pull the image unless it is already present."""
        response = await self._request("GET", f"/images/{image}/json", operation="inspect image")
        if response.status_code == 200:
            return
        if response.status_code != 404:
            self._check(response, "inspect image")

        # A colon in the last path segment separates the tag. Earlier colons
        # belong to a registry host:port.
        name, tag = image, "latest"
        if ":" in image.rsplit("/", 1)[-1]:
            name, _, tag = image.rpartition(":")
        logger.info("Pulling image %s", image)

        # The engine streams progress as JSON lines and reports pull errors
        # inside the stream with a 200 status.
        response = await self._request(
            "POST",
            "/images/create",
            operation="pull image",
            params={"fromImage": name, "tag": tag},
            timeout=None,
        )
        self._check(response, "pull image")
        for line in response.text.splitlines():
            if not line.strip():
                continue
            event = json.loads(line)
            if "error" in event:
                raise RuntimeRejected("pull image", event["error"])

    # -------------------------------------------------------------------------
    # Virtual networks
    # -------------------------------------------------------------------------

    async def create_virtual_network(
        self, name: str, subnet: str, labels: dict[str, str]
    ) -> str:
        """Create a bridge network with a fixed IPAM subnet."""
        body = {
            "Name": name,
            "Driver": "bridge",
            "CheckDuplicate": True,
            "IPAM": {"Driver": "default", "Config": [{"Subnet": subnet}]},
            "Labels": labels,
        }
        response = await self._request(
            "POST", "/networks/create", operation="create network", json=body
        )
        self._check(response, "create network")
        handle = response.json()["Id"]
        logger.debug("Created network %s (%s) on %s", name, handle[:12], subnet)
        return handle

    async def find_virtual_network(self, name: str) -> str | None:
        """Look a network up by exact name."""
        # The name filter matches substrings, so the result is filtered again.
        response = await self._request(
            "GET",
            "/networks",
            operation="list networks",
            params={"filters": json.dumps({"name": [name]})},
        )
        self._check(response, "list networks")
        for network in response.json():
            if network.get("Name") == name:
                return network["Id"]
        return None

    async def remove_virtual_network(self, handle: str) -> None:
        """Delete a network."""
        response = await self._request(
            "DELETE", f"/networks/{handle}", operation="remove network"
        )
        self._check(response, "remove network")

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    async def create_resource(self, spec: ContainerSpec) -> str:
        """
        Create and start a container.

        A container that was created but failed to start is removed before
        the start failure is raised.
        """
        response = await self._request(
            "POST",
            "/containers/create",
            operation="create container",
            params={"name": spec.name},
            json=self._container_body(spec),
        )
        self._check(response, "create container")
        handle = response.json()["Id"]

        try:
            await self.start_resource(handle)
        except (RuntimeRejected, RuntimeUnavailable):
            try:
                await self.remove_resource(handle, force=True)
            except (RuntimeRejected, RuntimeUnavailable) as cleanup_exc:
                logger.warning(
                    "Could not remove unstarted container %s: %s", spec.name, cleanup_exc
                )
            raise

        logger.debug("Started container %s (%s)", spec.name, handle[:12])
        return handle

    async def start_resource(self, handle: str) -> None:
        """Start a container. 304 means it was already running."""
        response = await self._request(
            "POST", f"/containers/{handle}/start", operation="start container"
        )
        self._check(response, "start container")

    async def stop_resource(self, handle: str) -> None:
        """Stop a container. 304 means it was already stopped."""
        response = await self._request(
            "POST",
            f"/containers/{handle}/stop",
            operation="stop container",
            params={"t": STOP_GRACE_SECONDS},
            timeout=DEFAULT_TIMEOUT + STOP_GRACE_SECONDS,
        )
        self._check(response, "stop container")

    async def remove_resource(self, handle: str, force: bool = False) -> None:
        """Remove a container together with its anonymous volumes."""
        response = await self._request(
            "DELETE",
            f"/containers/{handle}",
            operation="remove container",
            params={"force": str(force).lower(), "v": "true"},
        )
        self._check(response, "remove container")

    async def list_resources(self, labels: dict[str, str]) -> list[ResourceInfo]:
        """List containers, stopped ones included, by label."""
        filters = {"label": [f"{key}={value}" for key, value in labels.items()]}
        response = await self._request(
            "GET",
            "/containers/json",
            operation="list containers",
            params={"all": "true", "filters": json.dumps(filters)},
        )
        self._check(response, "list containers")
        return [
            ResourceInfo(
                handle=item["Id"],
                name=(item.get("Names") or ["/"])[0].lstrip("/"),
                state=ResourceState.parse(item.get("State")),
                ip=self._first_ip(item.get("NetworkSettings")),
                labels=item.get("Labels") or {},
            )
            for item in response.json()
        ]

    async def inspect_resource(self, handle: str) -> ResourceInfo:
        """Inspect one container."""
        response = await self._request(
            "GET", f"/containers/{handle}/json", operation="inspect container"
        )
        self._check(response, "inspect container")
        item = response.json()
        return ResourceInfo(
            handle=item["Id"],
            name=item.get("Name", "").lstrip("/"),
            state=ResourceState.parse((item.get("State") or {}).get("Status")),
            ip=self._first_ip(item.get("NetworkSettings")),
            labels=(item.get("Config") or {}).get("Labels") or {},
        )

    async def resource_logs(self, handle: str, tail: int | None = None) -> str:
        """Fetch container output. Containers run without a TTY, so the body is framed."""
        response = await self._request(
            "GET",
            f"/containers/{handle}/logs",
            operation="container logs",
            params={
                "stdout": "true",
                "stderr": "true",
                "tail": "all" if tail is None else str(tail),
            },
        )
        self._check(response, "container logs")
        return demux_log_stream(response.content)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> DockerEngineRuntime:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _request(
        self, method: str, path: str, *, operation: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise RuntimeUnavailable(
                f"Docker engine at {self._socket_path} unreachable during '{operation}': {exc}"
            ) from exc

    @staticmethod
    def _check(response: httpx.Response, operation: str) -> None:
        """Raise the matching runtime error for a non-success response."""
        if response.is_success or response.status_code == 304:
            return

        try:
            detail = response.json().get("message", response.text)
        except ValueError:
            detail = response.text
        status = response.status_code

        if status == 404:
            raise ResourceNotFound(operation, detail, status)
        if status in (403, 409) and any(marker in detail for marker in _BUSY_MARKERS):
            raise ResourceBusy(operation, detail, status)
        raise RuntimeRejected(operation, detail, status)

    @staticmethod
    def _container_body(spec: ContainerSpec) -> dict[str, Any]:
        return {
            "Image": spec.image,
            "Cmd": spec.command,
            "Env": [f"{key}={value}" for key, value in spec.env.items()],
            "Labels": spec.labels,
            "ExposedPorts": {binding.key: {} for binding in spec.ports},
            "HostConfig": {
                "PortBindings": {
                    binding.key: [{"HostPort": str(binding.port)}] for binding in spec.ports
                },
                "Binds": [
                    f"{m.source}:{m.target}{':ro' if m.read_only else ''}" for m in spec.mounts
                ],
                "RestartPolicy": {"Name": "unless-stopped"},
            },
            "NetworkingConfig": {
                "EndpointsConfig": {spec.network: {"IPAMConfig": {"IPv4Address": spec.ip}}}
            },
        }

    @staticmethod
    def _first_ip(settings: dict[str, Any] | None) -> str | None:
        networks = (settings or {}).get("Networks") or {}
        for endpoint in networks.values():
            if endpoint.get("IPAddress"):
                return endpoint["IPAddress"]
        return None
