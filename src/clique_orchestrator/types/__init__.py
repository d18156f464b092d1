"""Reusable type definitions for the orchestrator."""

from .base import CamelModel, FrozenModel, StrictBaseModel
from .exceptions import (
    AllocationError,
    CleanupTimeout,
    ConflictError,
    ContainerRuntimeError,
    InvalidNetworkState,
    InvalidSubnet,
    InvalidTransition,
    LastValidatorRemoval,
    MissingBootstrapError,
    NetworkNotFound,
    NodeNotFound,
    OrchestratorError,
    PartialProvisionFailure,
    ProvisioningError,
    RangeExhausted,
    ResourceBusy,
    ResourceNotFound,
    RuntimeRejected,
    RuntimeUnavailable,
    TeardownError,
    ValidationError,
)

__all__ = [
    # Models
    "CamelModel",
    "FrozenModel",
    "StrictBaseModel",
    # Exceptions
    "OrchestratorError",
    "ValidationError",
    "InvalidSubnet",
    "ConflictError",
    "AllocationError",
    "RangeExhausted",
    "ContainerRuntimeError",
    "RuntimeUnavailable",
    "RuntimeRejected",
    "ResourceNotFound",
    "ResourceBusy",
    "CleanupTimeout",
    "MissingBootstrapError",
    "ProvisioningError",
    "PartialProvisionFailure",
    "TeardownError",
    "NetworkNotFound",
    "NodeNotFound",
    "InvalidNetworkState",
    "InvalidTransition",
    "LastValidatorRemoval",
]
