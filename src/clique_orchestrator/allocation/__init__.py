"""Host address and port allocation."""

from .allocator import (
    DEFAULT_IP_OFFSET,
    DEFAULT_P2P_PORT,
    DEFAULT_RPC_PORT,
    AddressAllocator,
)

__all__ = [
    "DEFAULT_IP_OFFSET",
    "DEFAULT_P2P_PORT",
    "DEFAULT_RPC_PORT",
    "AddressAllocator",
]
