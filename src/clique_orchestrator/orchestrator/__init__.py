"""Network orchestration: lifecycle, locking, on-disk artifacts and the orchestrator."""

from .files import NetworkFiles
from .lifecycle import TRANSITIONS, NetworkLifecycle, ProvisioningPhase
from .locks import KeyedLocks
from .orchestrator import NetworkOrchestrator

__all__ = [
    "TRANSITIONS",
    "KeyedLocks",
    "NetworkFiles",
    "NetworkLifecycle",
    "NetworkOrchestrator",
    "ProvisioningPhase",
]
