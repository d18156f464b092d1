"""
Registry of provisioned networks.

The registry is the single source of truth for conflict validation against
other networks. It is passed into the orchestrator explicitly.
"""

from .database import NetworkRegistry
from .memory import InMemoryRegistry
from .namespaces import NetworkNamespace
from .sqlite import SQLiteRegistry

__all__ = [
    "InMemoryRegistry",
    "NetworkNamespace",
    "NetworkRegistry",
    "SQLiteRegistry",
]
