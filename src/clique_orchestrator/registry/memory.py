"""Process-local registry."""

from __future__ import annotations

from clique_orchestrator.network.info import NetworkInfo


class InMemoryRegistry:
    """
    Dict-backed implementation of the NetworkRegistry protocol.

    Records are deep-copied on the way in and on the way out.
    """

    def __init__(self) -> None:
        self._networks: dict[str, NetworkInfo] = {}

    def get(self, network_id: str) -> NetworkInfo | None:
        """Retrieve a copy of one network."""
        info = self._networks.get(network_id)
        return info.model_copy(deep=True) if info is not None else None

    def list(self) -> list[NetworkInfo]:
        """Copies of every network, ordered by id."""
        return [self._networks[key].model_copy(deep=True) for key in sorted(self._networks)]

    def put(self, info: NetworkInfo) -> None:
        """Store a copy of the record."""
        self._networks[info.network_id] = info.model_copy(deep=True)

    def delete(self, network_id: str) -> bool:
        """Drop a network. Returns whether it existed."""
        return self._networks.pop(network_id, None) is not None

    def close(self) -> None:
        """Nothing to release."""

    def __len__(self) -> int:
        return len(self._networks)

    def __contains__(self, network_id: object) -> bool:
        return network_id in self._networks
