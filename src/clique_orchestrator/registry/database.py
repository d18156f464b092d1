"""
Abstract registry interface.

Defines the Protocol that every network registry must follow.
Uses structural subtyping for flexibility.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from clique_orchestrator.network.info import NetworkInfo


class NetworkRegistry(Protocol):
    """
    Protocol for the keyed store of provisioned networks.

    Maps network id to NetworkInfo. Only single-key atomicity is assumed:
    keeping several keys consistent is the orchestrator's job.

    Implementations hand out copies. Mutating a returned record never
    changes the stored one; callers write changes back with `put`.
    """

    def get(self, network_id: str) -> NetworkInfo | None:
        """
        Retrieve a network by id.

        Args:
            network_id: Registry key.

        Returns:
            A copy of the record, or None if absent.
        """
        ...

    def list(self) -> list[NetworkInfo]:
        """
        Retrieve every network.

        Returns:
            Copies of all records, ordered by network id.
        """
        ...

    def put(self, info: NetworkInfo) -> None:
        """
        Insert or replace the record keyed by `info.network_id`.

        Args:
            info: Record to store.
        """
        ...

    def delete(self, network_id: str) -> bool:
        """
        Remove a network.

        Args:
            network_id: Registry key.

        Returns:
            True if a record was removed.
        """
        ...

    def close(self) -> None:
        """Release resources held by the registry."""
        ...
