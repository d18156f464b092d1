"""Container runtime capability, Docker adapter and boundary retries."""

from .base import (
    ContainerRuntime,
    ContainerSpec,
    Mount,
    PortBinding,
    ResourceInfo,
    ResourceState,
)
from .docker import DockerEngineRuntime
from .retry import (
    CLEANUP_RETRY_ON,
    CREATE_RETRY_ON,
    RetryPolicy,
    retry_async,
    retry_cleanup,
)

__all__ = [
    "CLEANUP_RETRY_ON",
    "CREATE_RETRY_ON",
    "ContainerRuntime",
    "ContainerSpec",
    "DockerEngineRuntime",
    "Mount",
    "PortBinding",
    "ResourceInfo",
    "ResourceState",
    "RetryPolicy",
    "retry_async",
    "retry_cleanup",
]
