"""
Network orchestrator.

Sequences validation, allocation, genesis generation and per-node
provisioning, commits the result to the registry, and owns teardown.

Locking
-------
Registry mutations for one network happen under that network's lock.
Runtime calls happen outside it: the lock is taken again only to commit.

Admission (conflict checks, allocation and the `creating` placeholder)
runs under a second, process-wide lock. Two networks admitted at the same
time could otherwise both pass validation with the same subnet or ports.
Admission is always taken before a network lock, never after.

Rollback
--------
Rollback is best-effort and aggregating. Every resource is attempted, each
failure is logged and collected, and the collected failures travel with the
original cause. A rollback failure never replaces the cause.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from clique_orchestrator.allocation import AddressAllocator
from clique_orchestrator.genesis import GenesisBuilder
from clique_orchestrator.keys import KeyGenerator, NodeCredentials
from clique_orchestrator.network.config import NetworkConfig, NodeSpec
from clique_orchestrator.network.info import (
    NetworkInfo,
    NetworkStatus,
    NodeRuntimeInfo,
    NodeStatus,
    ResolvedConfig,
    ResolvedNode,
)
from clique_orchestrator.provisioning import (
    LABEL_NETWORK,
    LABEL_NODE,
    NodeProvisioner,
    container_name,
    network_labels,
    profile_for,
    virtual_network_name,
)
from clique_orchestrator.registry import NetworkRegistry
from clique_orchestrator.runtime.base import ContainerRuntime, ResourceState
from clique_orchestrator.runtime.retry import (
    CREATE_RETRY_ON,
    RetryPolicy,
    Sleep,
    retry_async,
    retry_cleanup,
)
from clique_orchestrator.types import (
    ConflictError,
    ContainerRuntimeError,
    InvalidNetworkState,
    LastValidatorRemoval,
    NetworkNotFound,
    NodeNotFound,
    PartialProvisionFailure,
    ProvisioningError,
    ResourceNotFound,
    RuntimeRejected,
    TeardownError,
)
from clique_orchestrator.validation import ConflictValidator

from .files import NetworkFiles
from .lifecycle import NetworkLifecycle, ProvisioningPhase
from .locks import KeyedLocks

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NODE_STATES = {
    ResourceState.RUNNING: NodeStatus.RUNNING,
    ResourceState.CREATED: NodeStatus.STOPPED,
    ResourceState.EXITED: NodeStatus.STOPPED,
    ResourceState.PAUSED: NodeStatus.STOPPED,
    ResourceState.DEAD: NodeStatus.ERROR,
    ResourceState.REMOVING: NodeStatus.ERROR,
    ResourceState.RESTARTING: NodeStatus.ERROR,
    ResourceState.UNKNOWN: NodeStatus.ERROR,
}
"""
How engine states show up in node records.

`creating` and `stopping` are never observed: they mark operations in flight.
"""

_SETTLING_STATES = frozenset({ResourceState.CREATED, ResourceState.RESTARTING})
"""States a freshly started container passes through on its way to running."""


class NetworkOrchestrator:
    """
    Top-level entry point.

    Holds no network state of its own: everything lives in the registry,
    which is passed in and shared with whoever else reads it.
    """

    def __init__(
        self,
        registry: NetworkRegistry,
        runtime: ContainerRuntime,
        data_dir: Path,
        *,
        validator: ConflictValidator | None = None,
        allocator: AddressAllocator | None = None,
        keys: KeyGenerator | None = None,
        genesis: GenesisBuilder | None = None,
        provisioner: NodeProvisioner | None = None,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Args:
            registry: Keyed store of provisioned networks.
            runtime: Container engine.
            data_dir: Host directory for genesis and key files.
            validator: Conflict checks. Built over registry and runtime if omitted.
            allocator: Address and port allocation for added nodes. Defaults to
                the validator's, which allocates whole networks.
            keys: Identity generation.
            genesis: Genesis construction.
            provisioner: Container spec construction.
            retry: Backoff for runtime calls.
            sleep: Injected into retries for tests.
        """
        self.registry = registry
        self.runtime = runtime
        self.files = NetworkFiles(data_dir)
        if allocator is None:
            allocator = validator.allocator if validator is not None else AddressAllocator()
        self.allocator = allocator
        self.validator = validator or ConflictValidator(registry, runtime, allocator)
        self.keys = keys or KeyGenerator()
        self.genesis = genesis or GenesisBuilder()
        self.provisioner = provisioner or NodeProvisioner()
        self.retry = retry or RetryPolicy()
        self._sleep = sleep

        self._locks = KeyedLocks()
        self._admission = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_network(self, network_id: str) -> NetworkInfo:
        """
        The registry record of one network.

        Raises:
            NetworkNotFound: If it is not registered.
        """
        info = self.registry.get(network_id)
        if info is None:
            raise NetworkNotFound(network_id)
        return info

    def list_networks(self) -> list[NetworkInfo]:
        """Every registered network."""
        return self.registry.list()

    async def network_status(self, network_id: str) -> NetworkInfo:
        """
        Refresh node statuses from the runtime and return the record.

        Nodes whose container has disappeared are marked as errored.
        Records of networks that are being created or torn down are returned
        as stored.
        """
        info = self.get_network(network_id)
        if info.status not in (NetworkStatus.RUNNING, NetworkStatus.STOPPED):
            return info

        observed: dict[str, NodeStatus] = {}
        for node in info.nodes.values():
            if node.container_handle is None:
                continue
            try:
                resource = await self.runtime.inspect_resource(node.container_handle)
            except ResourceNotFound:
                observed[node.id] = NodeStatus.ERROR
                continue
            observed[node.id] = _NODE_STATES[resource.state]

        async with self._locks.hold(network_id):
            info = self.get_network(network_id)
            for node_id, status in observed.items():
                if node_id in info.nodes and info.nodes[node_id].status is not NodeStatus.STOPPING:
                    info.nodes[node_id].status = status
            self.registry.put(info)
        return info

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_network(self, config: NetworkConfig) -> NetworkInfo:
        """
        Provision a whole network.

        Returns:
            The committed record, with status `running`.

        Raises:
            ValidationError: If role counts exceed limits or prealloc is malformed.
            ConflictError: If the config collides with registered networks.
            AllocationError: If the subnet or port range runs out.
            ProvisioningError: If no node was created before the failure.
            PartialProvisionFailure: If some nodes were created before it.
        """
        network_id = config.network_id
        lifecycle = NetworkLifecycle(network_id)
        logger.info(
            "Creating network %s (chain %d, %s)", network_id, config.chain_id, config.subnet
        )

        # Nothing exists yet: failures up to the placeholder are raised as is.
        try:
            async with self._admission:
                # Checks every conflict first, then allocates.
                resolved = await self.validator.validate(config)
                lifecycle.advance(ProvisioningPhase.ALLOCATING)

                lifecycle.advance(ProvisioningPhase.GENERATING_GENESIS)
                credentials = {
                    node.id: self.keys.generate(node.ip, node.p2p_port) for node in resolved.nodes
                }
                signers = self._initial_signers(resolved)
                genesis = self.genesis.build(
                    resolved.chain_id,
                    [credentials[node_id] for node_id in signers],
                    consensus=resolved.consensus,
                    prealloc=resolved.prealloc,
                )

                info = NetworkInfo(network_id=network_id, config=resolved, genesis=genesis)
                async with self._locks.hold(network_id):
                    self.registry.put(info)
        except Exception:
            lifecycle.fail()
            raise

        lifecycle.advance(ProvisioningPhase.PROVISIONING)
        network_handle: str | None = None
        try:
            self.files.write_genesis(network_id, genesis)
            for node in resolved.nodes:
                self.files.write_identity(network_id, node.id, credentials[node.id])

            await self._with_create_retry(
                lambda: self.runtime.ensure_image(self.provisioner.image), "pull image"
            )
            network_handle = await self._with_create_retry(
                lambda: self.runtime.create_virtual_network(
                    virtual_network_name(network_id),
                    resolved.subnet,
                    network_labels(network_id, resolved.chain_id),
                ),
                f"create network {network_id}",
            )
            info.docker_network_id = network_handle
            await self._commit(info)

            await self._provision_nodes(info, resolved, credentials, signers)
            await self._confirm_running(info)
        except Exception as exc:
            failed_in = lifecycle.phase
            lifecycle.advance(ProvisioningPhase.ROLLING_BACK)
            created = [n.id for n in info.nodes.values() if n.container_handle is not None]
            logger.error("Provisioning of %s failed in %s: %s", network_id, failed_in.value, exc)

            rollback_errors = await self._release_network(info, network_handle, graceful=False)
            async with self._locks.hold(network_id):
                self.registry.delete(network_id)
            lifecycle.fail()

            if created:
                raise PartialProvisionFailure(
                    network_id, exc, created, rollback_errors, failed_in
                ) from exc
            raise ProvisioningError(network_id, exc, rollback_errors, failed_in) from exc

        for node in info.nodes.values():
            node.status = NodeStatus.RUNNING
        info.status = NetworkStatus.RUNNING
        await self._commit(info)
        lifecycle.advance(ProvisioningPhase.RUNNING)

        logger.info("Network %s is running with %d node(s)", network_id, len(info.nodes))
        return info

    async def _provision_nodes(
        self,
        info: NetworkInfo,
        resolved: ResolvedConfig,
        credentials: dict[str, NodeCredentials],
        signers: list[str],
    ) -> None:
        """Create every container, designated bootnode first."""
        bootnode = resolved.bootnode
        bootstrap_url = credentials[bootnode.id].discovery_url
        ordered = [bootnode, *(node for node in resolved.nodes if node.id != bootnode.id)]
        network_dir = self.files.network_dir(info.network_id)

        for node in ordered:
            spec = self.provisioner.build_node_spec(
                node,
                credentials[node.id],
                resolved,
                network_dir,
                bootstrap_url=None if node.id == bootnode.id else bootstrap_url,
                mining=True if node.id in signers else None,
            )

            handle = await self._with_create_retry(
                lambda: self.runtime.create_resource(spec), f"create container {spec.name}"
            )
            record = self._node_record(info.network_id, node, credentials[node.id])
            record.container_handle = handle
            info.nodes[node.id] = record
            await self._commit(info)
            logger.info(
                "Node %s/%s (%s) started at %s", info.network_id, node.id, node.role.value, node.ip
            )

    async def _confirm_running(self, info: NetworkInfo) -> None:
        """
        Wait for every container created for the network to run.

        Raises:
            RuntimeRejected: If one of them does not come up.
        """
        for node in info.nodes.values():
            assert node.container_handle is not None
            await self._wait_running(node.container_handle, node.container_name)

    async def _wait_running(self, handle: str, name: str) -> None:
        """
        Poll a container until it runs, backing off as the retry policy does.

        A container that was just created or is being restarted by the engine
        gets every attempt. Any other state fails at once.

        Raises:
            RuntimeRejected: If it stops, or is still settling after every attempt.
        """
        for attempt in range(1, self.retry.attempts + 1):
            resource = await self.runtime.inspect_resource(handle)
            if resource.state is ResourceState.RUNNING:
                return
            if resource.state not in _SETTLING_STATES:
                break
            if attempt < self.retry.attempts:
                await self._sleep(self.retry.delay(attempt))

        raise RuntimeRejected(
            "inspect container", f"{name} is {resource.state.value}, expected running"
        )

    # -------------------------------------------------------------------------
    # Delete, stop, start
    # -------------------------------------------------------------------------

    async def delete_network(self, network_id: str) -> None:
        """
        Tear a network down and forget it.

        Containers are stopped and removed, then the virtual network, then
        the files. The record is deleted only when every removal succeeded.

        Raises:
            NetworkNotFound: If it is not registered.
            InvalidNetworkState: If it is being created, stopped or started, or a node
                is being added or removed.
            TeardownError: If some resource could not be removed. The record
                stays, with status `error`, so the delete can be retried.
        """
        async with self._locks.hold(network_id):
            info = self.get_network(network_id)
            self._require_settled(
                info,
                "delete_network",
                NetworkStatus.RUNNING,
                NetworkStatus.STOPPED,
                NetworkStatus.ERROR,
            )

            lifecycle = NetworkLifecycle.resume(network_id, info.status)
            if lifecycle.can_advance(ProvisioningPhase.STOPPING):
                lifecycle.advance(ProvisioningPhase.STOPPING)
            info.status = NetworkStatus.STOPPING
            self.registry.put(info)

        logger.info("Deleting network %s", network_id)
        failures = await self._release_network(info, info.docker_network_id, graceful=True)

        async with self._locks.hold(network_id):
            if failures:
                info.status = NetworkStatus.ERROR
                self.registry.put(info)
                raise TeardownError(network_id, failures)

            if lifecycle.phase is ProvisioningPhase.STOPPING:
                lifecycle.advance(ProvisioningPhase.STOPPED)
            lifecycle.advance(ProvisioningPhase.DESTROYED)
            self.registry.delete(network_id)

        logger.info("Network %s deleted", network_id)

    async def stop_network(self, network_id: str) -> NetworkInfo:
        """
        Stop every container and keep everything else.

        Raises:
            NetworkNotFound: If it is not registered, or was removed meanwhile.
            InvalidNetworkState: If it is not running, or a node is being added or removed.
            TeardownError: If some container could not be stopped.
        """
        async with self._locks.hold(network_id):
            info = self.get_network(network_id)
            self._require_settled(info, "stop_network", NetworkStatus.RUNNING)
            NetworkLifecycle.resume(network_id, info.status).advance(ProvisioningPhase.STOPPING)
            info.status = NetworkStatus.STOPPING
            for node in info.nodes.values():
                node.status = NodeStatus.STOPPING
            self.registry.put(info)

        outcome: dict[str, NodeStatus] = {}
        failures: list[Exception] = []
        for node in info.nodes.values():
            if node.container_handle is None:
                outcome[node.id] = NodeStatus.STOPPED
                continue
            try:
                await self._stop_container(node.container_handle)
                outcome[node.id] = NodeStatus.STOPPED
            except ContainerRuntimeError as exc:
                logger.warning("Could not stop %s: %s", node.container_name, exc)
                outcome[node.id] = NodeStatus.ERROR
                failures.append(exc)

        async with self._locks.hold(network_id):
            # Written back only if the record is still the one this call marked.
            current = self.registry.get(network_id)
            if current is None:
                logger.warning("Network %s was removed while stopping", network_id)
                raise NetworkNotFound(network_id)
            if current.status is not NetworkStatus.STOPPING:
                raise InvalidNetworkState("stop_network", current.status.value, ["stopping"])

            for node_id, status in outcome.items():
                if node_id in current.nodes:
                    current.nodes[node_id].status = status
            current.status = NetworkStatus.ERROR if failures else NetworkStatus.STOPPED
            self.registry.put(current)

        info = current
        if failures:
            raise TeardownError(network_id, failures)

        logger.info("Network %s stopped", network_id)
        return info

    async def start_network(self, network_id: str) -> NetworkInfo:
        """
        Start a stopped network again.

        Raises:
            NetworkNotFound: If it is not registered.
            InvalidNetworkState: If it is not stopped.
            ConflictError: If another network took the chain id meanwhile.
            ProvisioningError: If a container fails to come back.
        """
        async with self._admission, self._locks.hold(network_id):
            info = self._require_status(network_id, "start_network", NetworkStatus.STOPPED)
            conflicts = self.validator.find_restart_conflicts(info)
            if conflicts:
                raise ConflictError(conflicts)
            lifecycle = NetworkLifecycle.resume(network_id, info.status)
            info.status = NetworkStatus.CREATING
            self.registry.put(info)

        # The bootnode first, so the others find it when they come up.
        bootnode = info.bootnode()
        ordered = sorted(info.nodes.values(), key=lambda node: node is not bootnode)
        try:
            for node in ordered:
                handle = node.container_handle
                if handle is None:
                    continue
                await self._with_create_retry(
                    lambda: self.runtime.start_resource(handle),
                    f"start container {node.container_name}",
                )
            await self._confirm_running(info)
        except Exception as exc:
            failed_in = lifecycle.fail()
            info.status = NetworkStatus.ERROR
            await self._commit(info)
            raise ProvisioningError(network_id, exc, phase=failed_in) from exc

        lifecycle.advance(ProvisioningPhase.RUNNING)
        for node in info.nodes.values():
            node.status = NodeStatus.RUNNING
        info.status = NetworkStatus.RUNNING
        await self._commit(info)

        logger.info("Network %s started", network_id)
        return info

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    async def add_node(self, network_id: str, node: NodeSpec) -> NodeRuntimeInfo:
        """
        Provision one more node in a running network.

        Only the new node is provisioned. Existing nodes are not touched.
        A new validator starts sealing only once existing signers vote it in:
        its address is not in the genesis.

        Raises:
            NetworkNotFound: If it is not registered.
            InvalidNetworkState: If it is not running.
            ValidationError: If the role is at its limit or the IP is outside the subnet.
            ConflictError: If the node id, address or an explicit port is taken.
            AllocationError: If the subnet or port range runs out.
            ProvisioningError: If the container could not be created.
        """
        async with self._admission, self._locks.hold(network_id):
            info = self._require_status(network_id, "add_node", NetworkStatus.RUNNING)
            self.validator.check_node_shape(info, node)
            conflicts = self.validator.find_node_conflicts(info, node)
            if conflicts:
                raise ConflictError(conflicts)

            ip = self.allocator.resolve(
                info.config.subnet, [node], taken=[n.ip for n in info.nodes.values()]
            )[node.id]
            rpc_port, p2p_port = self.allocator.allocate_ports(
                [node], reserved=self._reserved_ports()
            )[node.id]
            resolved = ResolvedNode(
                id=node.id,
                role=node.role,
                ip=ip,
                rpc_port=rpc_port,
                p2p_port=p2p_port,
                env=node.env,
                extra_args=node.extra_args,
            )
            credentials = self.keys.generate(ip, p2p_port)
            bootnode = info.bootnode()

            # Reserve the id, address and ports before leaving the lock.
            record = self._node_record(network_id, resolved, credentials)
            info.nodes[node.id] = record
            self.registry.put(info)

        handle: str | None = None
        try:
            self.files.write_identity(network_id, node.id, credentials)
            spec = self.provisioner.build_node_spec(
                resolved,
                credentials,
                info.config,
                self.files.network_dir(network_id),
                bootstrap_url=bootnode.credentials.discovery_url if bootnode else None,
            )
            await self._with_create_retry(
                lambda: self.runtime.ensure_image(self.provisioner.image), "pull image"
            )
            handle = await self._with_create_retry(
                lambda: self.runtime.create_resource(spec), f"create container {spec.name}"
            )
            await self._wait_running(handle, spec.name)
        except Exception as exc:
            rollback_errors = await self._release_node(network_id, node.id, handle, graceful=False)
            async with self._locks.hold(network_id):
                current = self.get_network(network_id)
                current.nodes.pop(node.id, None)
                self.registry.put(current)
            raise ProvisioningError(
                network_id, exc, rollback_errors, ProvisioningPhase.PROVISIONING
            ) from exc

        async with self._locks.hold(network_id):
            current = self.get_network(network_id)
            record.container_handle = handle
            record.status = NodeStatus.RUNNING
            current.nodes[node.id] = record
            self.registry.put(current)

        if profile_for(node.role).signer:
            logger.info(
                "Validator %s (0x%s) joined %s; it seals once existing signers vote it in",
                node.id,
                credentials.address,
                network_id,
            )
        return record

    async def remove_node(self, network_id: str, node_id: str) -> None:
        """
        Stop and remove one node. Other nodes are not touched.

        The node goes stopping, then stopped, then its container is removed.

        Raises:
            NetworkNotFound: If it is not registered.
            NodeNotFound: If the network has no such node.
            InvalidNetworkState: If the network or node is in transition.
            LastValidatorRemoval: If the node is the network's only signer.
            TeardownError: If the container could not be removed.
        """
        async with self._locks.hold(network_id):
            info = self.get_network(network_id)
            if info.status not in (NetworkStatus.RUNNING, NetworkStatus.STOPPED):
                raise InvalidNetworkState("remove_node", info.status.value, ["running", "stopped"])
            record = info.nodes.get(node_id)
            if record is None:
                raise NodeNotFound(network_id, node_id)
            if record.status in (NodeStatus.CREATING, NodeStatus.STOPPING):
                raise InvalidNetworkState(
                    "remove_node", record.status.value, ["running", "stopped", "error"]
                )

            signers = self._current_signers(info)
            if signers == [node_id]:
                raise LastValidatorRemoval(node_id)

            record.status = NodeStatus.STOPPING
            self.registry.put(info)

        logger.info("Removing node %s/%s", network_id, node_id)
        failures = await self._release_node(
            network_id, node_id, record.container_handle, graceful=True
        )

        async with self._locks.hold(network_id):
            info = self.get_network(network_id)
            if failures:
                info.nodes[node_id].status = NodeStatus.ERROR
                self.registry.put(info)
                raise TeardownError(f"{network_id}/{node_id}", failures)
            info.nodes.pop(node_id, None)
            self.registry.put(info)

    async def node_logs(self, network_id: str, node_id: str, tail: int | None = None) -> str:
        """
        Client output of one node.

        Raises:
            NetworkNotFound: If it is not registered.
            NodeNotFound: If the network has no such node.
            InvalidNetworkState: If the node has no container yet.
            ResourceNotFound: If its container is gone from the engine.
        """
        node = self.get_network(network_id).nodes.get(node_id)
        if node is None:
            raise NodeNotFound(network_id, node_id)
        handle = node.container_handle
        if handle is None:
            raise InvalidNetworkState("node_logs", node.status.value, ["running", "stopped"])
        return await self._with_create_retry(
            lambda: self.runtime.resource_logs(handle, tail), f"logs of {node.container_name}"
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_status(
        self, network_id: str, operation: str, status: NetworkStatus
    ) -> NetworkInfo:
        info = self.get_network(network_id)
        if info.status is not status:
            raise InvalidNetworkState(operation, info.status.value, [status.value])
        return info

    @staticmethod
    def _require_settled(info: NetworkInfo, operation: str, *allowed: NetworkStatus) -> None:
        """
        Refuse to act on a network another operation is still working on.

        Raises:
            InvalidNetworkState: If the network status is not allowed, or a
                node is being added or removed.
        """
        expected = [status.value for status in allowed]
        if info.status not in allowed:
            raise InvalidNetworkState(operation, info.status.value, expected)
        for node in info.nodes.values():
            if node.status in (NodeStatus.CREATING, NodeStatus.STOPPING):
                raise InvalidNetworkState(
                    operation, f"{info.status.value} ({node.id} {node.status.value})", expected
                )

    def _reserved_ports(self) -> set[int]:
        """Host ports bound by every registered network."""
        return {port for info in self.registry.list() for port in info.bound_ports()}

    async def _commit(self, info: NetworkInfo) -> None:
        async with self._locks.hold(info.network_id):
            self.registry.put(info)

    @staticmethod
    def _initial_signers(resolved: ResolvedConfig) -> list[str]:
        """Ids of signing roles in config order, or the bootnode when there are none."""
        validators = [node.id for node in resolved.nodes if profile_for(node.role).signer]
        if validators:
            return validators
        logger.warning(
            "Network %s has no validator; bootnode %s will be the only signer",
            resolved.network_id,
            resolved.bootnode.id,
        )
        return [resolved.bootnode.id]

    @staticmethod
    def _current_signers(info: NetworkInfo) -> list[str]:
        """Node ids whose address is a genesis signer and whose node still exists."""
        if info.genesis is None:
            return []
        addresses = set(info.genesis.validators)
        return [node.id for node in info.nodes.values() if node.credentials.address in addresses]

    @staticmethod
    def _node_record(
        network_id: str, node: ResolvedNode, credentials: NodeCredentials
    ) -> NodeRuntimeInfo:
        return NodeRuntimeInfo(
            id=node.id,
            role=node.role,
            ip=node.ip,
            rpc_port=node.rpc_port,
            p2p_port=node.p2p_port,
            container_name=container_name(network_id, node.id),
            credentials=credentials,
        )

    async def _with_create_retry(
        self, operation: Callable[[], Awaitable[T]], description: str
    ) -> T:
        return await retry_async(
            operation, self.retry, CREATE_RETRY_ON, description=description, sleep=self._sleep
        )

    async def _stop_container(self, handle: str) -> None:
        """Stop a container. A missing container counts as stopped."""
        try:
            await retry_cleanup(
                lambda: self.runtime.stop_resource(handle),
                self.retry,
                description=f"stop container {handle[:12]}",
                sleep=self._sleep,
            )
        except ResourceNotFound:
            pass

    async def _remove_container(self, handle: str) -> None:
        """Force-remove a container. A missing container counts as removed."""
        try:
            await retry_cleanup(
                lambda: self.runtime.remove_resource(handle, force=True),
                self.retry,
                description=f"remove container {handle[:12]}",
                sleep=self._sleep,
            )
        except ResourceNotFound:
            pass

    async def _release_node(
        self, network_id: str, node_id: str, handle: str | None, *, graceful: bool
    ) -> list[Exception]:
        """
        Remove one node's container and files. Returns the failures.

        Without a handle the container is looked up by label, in case the
        engine kept it after a failed create.
        """
        failures: list[Exception] = []
        handles = [handle] if handle is not None else []
        if handle is None:
            try:
                tagged = await self.runtime.list_resources(
                    {LABEL_NETWORK: network_id, LABEL_NODE: node_id}
                )
                handles = [r.handle for r in tagged]
            except ContainerRuntimeError as exc:
                logger.warning("Could not list containers of %s/%s: %s", network_id, node_id, exc)
                failures.append(exc)

        for current in handles:
            try:
                if graceful:
                    await self._stop_container(current)
                    await self._mark_node(network_id, node_id, NodeStatus.STOPPED)
                await self._remove_container(current)
            except ContainerRuntimeError as exc:
                logger.warning("Could not release node %s/%s: %s", network_id, node_id, exc)
                failures.append(exc)

        if not failures:
            try:
                self.files.remove_node(network_id, node_id)
            except OSError as exc:
                logger.warning("Could not remove files of %s/%s: %s", network_id, node_id, exc)
                failures.append(exc)
        return failures

    async def _mark_node(self, network_id: str, node_id: str, status: NodeStatus) -> None:
        async with self._locks.hold(network_id):
            info = self.registry.get(network_id)
            if info is not None and node_id in info.nodes:
                info.nodes[node_id].status = status
                self.registry.put(info)

    async def _release_network(
        self, info: NetworkInfo, network_handle: str | None, *, graceful: bool
    ) -> list[Exception]:
        """
        Remove every container, the virtual network and the files of a network.

        Containers are found both through the record and by label, so a
        container whose create call failed after the engine made it is
        removed as well.

        Returns:
            Every failure, in the order it happened.
        """
        network_id = info.network_id
        failures: list[Exception] = []

        handles = [node.container_handle for node in info.nodes.values() if node.container_handle]
        try:
            tagged = await self.runtime.list_resources({LABEL_NETWORK: network_id})
            handles.extend(r.handle for r in tagged if r.handle not in handles)
        except ContainerRuntimeError as exc:
            logger.warning("Could not list containers of %s: %s", network_id, exc)
            failures.append(exc)

        for handle in handles:
            try:
                if graceful:
                    await self._stop_container(handle)
                await self._remove_container(handle)
            except ContainerRuntimeError as exc:
                logger.warning(
                    "Could not remove container %s of %s: %s", handle[:12], network_id, exc
                )
                failures.append(exc)

        if network_handle is not None:
            try:
                await retry_cleanup(
                    lambda: self.runtime.remove_virtual_network(network_handle),
                    self.retry,
                    description=f"remove network {virtual_network_name(network_id)}",
                    sleep=self._sleep,
                )
            except ResourceNotFound:
                pass
            except ContainerRuntimeError as exc:
                logger.warning("Could not remove virtual network of %s: %s", network_id, exc)
                failures.append(exc)

        # Keys stay on disk while a container might still use them.
        if not failures:
            try:
                self.files.remove_network(network_id)
            except OSError as exc:
                logger.warning("Could not remove files of %s: %s", network_id, exc)
                failures.append(exc)

        return failures
