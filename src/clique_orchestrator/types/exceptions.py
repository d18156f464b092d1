"""Exception hierarchy for the network orchestrator."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from clique_orchestrator.orchestrator.lifecycle import ProvisioningPhase
    from clique_orchestrator.validation.conflicts import Conflict


class OrchestratorError(Exception):
    """
    Base exception for all orchestrator errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


# -------------------------------------------------------------------------
# Caller-fixable input errors
# -------------------------------------------------------------------------


class ValidationError(OrchestratorError):
    """
    Raised when a configuration has a bad shape.

    Always caller-fixable. Never retried.

    Attributes:
        field: The offending field (dotted path).
        issue: What is wrong with it.
        value: The rejected value, if any.
    """

    def __init__(self, field: str, issue: str, value: Any = None) -> None:
        self.field = field
        self.issue = issue
        self.value = value

        msg = f"Configuration validation failed for '{field}': {issue}"
        if value is not None:
            msg = f"{msg} (provided: {value!r})"

        super().__init__(msg)


class InvalidSubnet(ValidationError):
    """Raised when a CIDR is malformed or its prefix length is out of range."""

    def __init__(self, subnet: str, issue: str) -> None:
        super().__init__("subnet", issue, subnet)


class ConflictError(OrchestratorError):
    """
    Raised when a candidate configuration collides with existing networks.

    Carries every conflict found, not only the first one.

    Attributes:
        conflicts: The typed conflicts, each with remediation suggestions.
    """

    def __init__(self, conflicts: Sequence[Conflict]) -> None:
        self.conflicts = list(conflicts)
        lines = "; ".join(c.message for c in self.conflicts)
        super().__init__(f"{len(self.conflicts)} conflict(s): {lines}")


class AllocationError(OrchestratorError):
    """Raised when addresses or ports cannot be allocated."""


class RangeExhausted(AllocationError):
    """
    Raised when a requested index falls outside the available range.

    Attributes:
        resource: What ran out ("ip", "rpc port", "p2p port").
        requested: The value that would have been handed out.
        limit: The last value that can be handed out.
    """

    def __init__(self, resource: str, requested: str | int, limit: str | int) -> None:
        self.resource = resource
        self.requested = requested
        self.limit = limit
        super().__init__(f"{resource} range exhausted: {requested} is past {limit}")


# -------------------------------------------------------------------------
# Container runtime boundary
# -------------------------------------------------------------------------


class ContainerRuntimeError(OrchestratorError):
    """Base class for failures reported by the container runtime."""


class RuntimeUnavailable(ContainerRuntimeError):
    """The runtime could not be reached. Transient."""


class RuntimeRejected(ContainerRuntimeError):
    """
    The runtime refused an operation.

    Attributes:
        operation: The operation that was refused.
        status_code: Runtime status code, when one exists.
    """

    def __init__(self, operation: str, detail: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Runtime rejected '{operation}': {detail}")


class ResourceNotFound(RuntimeRejected):
    """The referenced container or virtual network does not exist."""


class ResourceBusy(RuntimeRejected):
    """The resource is still being removed or is otherwise in transition."""


class CleanupTimeout(ContainerRuntimeError):
    """
    Raised when a cleanup operation keeps failing after every retry.

    Attributes:
        operation: The operation that was retried.
        attempts: How many attempts were made.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"'{operation}' did not complete after {attempts} attempts: {last_error}")


# -------------------------------------------------------------------------
# Provisioning
# -------------------------------------------------------------------------


class MissingBootstrapError(OrchestratorError):
    """Raised when a non-bootstrap node is provisioned without a discovery URL."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(
            f"Node '{node_id}' needs the bootnode discovery URL, but no bootnode is resolved"
        )


class ProvisioningError(OrchestratorError):
    """
    Raised when provisioning fails and the network has been rolled back.

    Attributes:
        network_id: The network that was being provisioned.
        cause: The original failure.
        rollback_errors: Failures hit while rolling back. Never replaces `cause`.
        phase: The lifecycle phase in which the failure happened.
    """

    def __init__(
        self,
        network_id: str,
        cause: Exception,
        rollback_errors: Sequence[Exception] = (),
        phase: ProvisioningPhase | None = None,
    ) -> None:
        self.network_id = network_id
        self.cause = cause
        self.rollback_errors = list(rollback_errors)
        self.phase = phase

        msg = f"Provisioning of network '{network_id}' failed: {cause}"
        if self.rollback_errors:
            msg = f"{msg} ({len(self.rollback_errors)} rollback failure(s))"

        super().__init__(msg)


class PartialProvisionFailure(ProvisioningError):
    """
    Raised when some nodes were created before another one failed.

    Attributes:
        created_nodes: The nodes that had been created (and were rolled back).
    """

    def __init__(
        self,
        network_id: str,
        cause: Exception,
        created_nodes: Sequence[str],
        rollback_errors: Sequence[Exception] = (),
        phase: ProvisioningPhase | None = None,
    ) -> None:
        self.created_nodes = list(created_nodes)
        super().__init__(network_id, cause, rollback_errors, phase)


class TeardownError(OrchestratorError):
    """
    Raised when one or more resources could not be removed.

    Attributes:
        failures: Every failure hit during teardown.
    """

    def __init__(self, target: str, failures: Sequence[Exception]) -> None:
        self.target = target
        self.failures = list(failures)
        super().__init__(f"Teardown of '{target}' left {len(self.failures)} failure(s)")


# -------------------------------------------------------------------------
# State and lookup
# -------------------------------------------------------------------------


class NetworkNotFound(OrchestratorError):
    """Raised when the registry has no network with the given id."""

    def __init__(self, network_id: str) -> None:
        self.network_id = network_id
        super().__init__(f"Network '{network_id}' not found")


class NodeNotFound(OrchestratorError):
    """Raised when a network has no node with the given id."""

    def __init__(self, network_id: str, node_id: str) -> None:
        self.network_id = network_id
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in network '{network_id}'")


class InvalidNetworkState(OrchestratorError):
    """Raised when an operation is attempted in a state that does not allow it."""

    def __init__(self, operation: str, current: str, required: Sequence[str] = ()) -> None:
        self.operation = operation
        self.current = current
        self.required = list(required)

        msg = f"Cannot perform '{operation}' in state '{current}'"
        if self.required:
            msg = f"{msg} (required: {', '.join(self.required)})"

        super().__init__(msg)


class InvalidTransition(OrchestratorError):
    """Raised when the lifecycle is asked to move along an edge it does not have."""

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"Illegal lifecycle transition {source} -> {target}")


class LastValidatorRemoval(OrchestratorError):
    """Raised when removing a node would leave the network without a signer."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(
            f"Cannot remove validator '{node_id}': Clique networks need at least one signer"
        )
