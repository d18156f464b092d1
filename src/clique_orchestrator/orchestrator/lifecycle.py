"""
Network lifecycle.

Creation walks a fixed sequence of phases. Any phase may fail into
ROLLING_BACK, which always ends in FAILED:

    VALIDATING -> ALLOCATING -> GENERATING_GENESIS -> PROVISIONING -> RUNNING
         |             |                |                  |            |
         +-------------+----------------+------------------+------------+
                                        v
                                  ROLLING_BACK -> FAILED

Teardown of a running network:

    RUNNING -> STOPPING -> STOPPED -> DESTROYED

A running network re-enters PROVISIONING when a node is added, and a
stopped network returns to RUNNING when it is started again.
"""

from __future__ import annotations

import logging
from enum import Enum

from clique_orchestrator.network.info import NetworkStatus
from clique_orchestrator.types import InvalidTransition

logger = logging.getLogger(__name__)


class ProvisioningPhase(str, Enum):
    """Phases of a network's lifecycle."""

    VALIDATING = "validating"
    ALLOCATING = "allocating"
    GENERATING_GENESIS = "generating_genesis"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYED = "destroyed"


_P = ProvisioningPhase

TRANSITIONS: dict[ProvisioningPhase, frozenset[ProvisioningPhase]] = {
    _P.VALIDATING: frozenset({_P.ALLOCATING, _P.ROLLING_BACK}),
    _P.ALLOCATING: frozenset({_P.GENERATING_GENESIS, _P.ROLLING_BACK}),
    _P.GENERATING_GENESIS: frozenset({_P.PROVISIONING, _P.ROLLING_BACK}),
    _P.PROVISIONING: frozenset({_P.RUNNING, _P.ROLLING_BACK}),
    _P.RUNNING: frozenset({_P.PROVISIONING, _P.STOPPING, _P.ROLLING_BACK}),
    _P.STOPPING: frozenset({_P.STOPPED, _P.ROLLING_BACK}),
    _P.STOPPED: frozenset({_P.RUNNING, _P.DESTROYED, _P.ROLLING_BACK}),
    _P.ROLLING_BACK: frozenset({_P.FAILED}),
    _P.FAILED: frozenset({_P.DESTROYED}),
    _P.DESTROYED: frozenset(),
}
"""Allowed edges. FAILED may still be destroyed to clean up leftovers."""


_STATUS_PHASES = {
    NetworkStatus.CREATING: _P.PROVISIONING,
    NetworkStatus.RUNNING: _P.RUNNING,
    NetworkStatus.STOPPING: _P.STOPPING,
    NetworkStatus.STOPPED: _P.STOPPED,
    NetworkStatus.ERROR: _P.FAILED,
}


class NetworkLifecycle:
    """
    Tracks the phase of one network and rejects illegal moves.

    Keeps the full history for diagnostics.
    """

    def __init__(self, network_id: str, phase: ProvisioningPhase = _P.VALIDATING) -> None:
        self.network_id = network_id
        self.history: list[ProvisioningPhase] = [phase]

    @classmethod
    def resume(cls, network_id: str, status: NetworkStatus) -> NetworkLifecycle:
        """Pick up the lifecycle of a registered network from its status."""
        return cls(network_id, _STATUS_PHASES[status])

    @property
    def phase(self) -> ProvisioningPhase:
        """Current phase."""
        return self.history[-1]

    @property
    def is_terminal(self) -> bool:
        """Whether no further phase is possible except destruction."""
        return self.phase in (_P.FAILED, _P.DESTROYED)

    def can_advance(self, target: ProvisioningPhase) -> bool:
        """Whether target is reachable in one step."""
        return target in TRANSITIONS[self.phase]

    def advance(self, target: ProvisioningPhase) -> None:
        """
        Move to target.

        Raises:
            InvalidTransition: If the edge does not exist.
        """
        if not self.can_advance(target):
            raise InvalidTransition(self.phase.value, target.value)
        logger.debug("Network %s: %s -> %s", self.network_id, self.phase.value, target.value)
        self.history.append(target)

    def fail(self) -> ProvisioningPhase:
        """
        Walk ROLLING_BACK -> FAILED.

        Returns:
            The phase the failure happened in.
        """
        failed_in = self.phase
        if failed_in is not _P.ROLLING_BACK:
            self.advance(_P.ROLLING_BACK)
        self.advance(_P.FAILED)
        return failed_in
