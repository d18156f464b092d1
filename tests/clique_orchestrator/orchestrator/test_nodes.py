"""Tests for adding and removing single nodes."""

from __future__ import annotations

from pathlib import Path

import pytest

from clique_orchestrator.network import NetworkStatus, NodeSpec, NodeStatus, Role
from clique_orchestrator.orchestrator import NetworkOrchestrator
from clique_orchestrator.registry import InMemoryRegistry
from clique_orchestrator.types import (
    ConflictError,
    InvalidNetworkState,
    LastValidatorRemoval,
    NetworkNotFound,
    NodeNotFound,
    ProvisioningError,
    ResourceNotFound,
    TeardownError,
    ValidationError,
)
from clique_orchestrator.validation import ConflictKind
from tests.clique_orchestrator.helpers import InMemoryRuntime, make_config


@pytest.fixture
async def running(orchestrator: NetworkOrchestrator) -> NetworkOrchestrator:
    """An orchestrator with dev-net (boot, signer-1, signer-2) running."""
    await orchestrator.create_network(make_config())
    return orchestrator


class TestAddNode:
    """add_node."""

    async def test_next_free_address_and_ports(
        self, running: NetworkOrchestrator, registry: InMemoryRegistry
    ) -> None:
        """The new node takes the next address and the next free ports."""
        record = await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

        assert (record.ip, record.rpc_port, record.p2p_port) == ("172.20.0.13", 8548, 30306)
        assert record.status is NodeStatus.RUNNING
        assert record.container_name == "clique-dev-net-rpc-1"

        stored = registry.get("dev-net")
        assert stored is not None
        assert list(stored.nodes) == ["boot", "signer-1", "signer-2", "rpc-1"]
        assert stored.nodes["rpc-1"].container_handle == record.container_handle

    async def test_existing_nodes_are_untouched(
        self, running: NetworkOrchestrator, runtime: InMemoryRuntime
    ) -> None:
        """Only the new container is created. Nothing is restarted."""
        runtime.calls.clear()

        await running.add_node("dev-net", NodeSpec(id="plain-1", role=Role.PLAIN))

        assert [c for c in runtime.calls if c[0] != "ensure_image"] == [
            ("create_resource", "clique-dev-net-plain-1"),
            ("start_resource", "clique-dev-net-plain-1"),
        ]

    async def test_new_node_bootstraps_from_the_bootnode(
        self, running: NetworkOrchestrator, runtime: InMemoryRuntime
    ) -> None:
        """The bootnode discovery URL is passed to the new container."""
        info = running.get_network("dev-net")
        enode = info.nodes["boot"].credentials.discovery_url

        await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

        container = runtime.container_named("clique-dev-net-rpc-1")
        assert container is not None
        assert f"--bootnodes={enode}" in container.spec.command

    async def test_new_validator_is_not_in_the_genesis(
        self, running: NetworkOrchestrator, data_dir: Path
    ) -> None:
        """Signers are voted in, the genesis does not change."""
        before = running.get_network("dev-net").genesis
        genesis_file = (data_dir / "dev-net" / "genesis.json").read_text()

        await running.add_node("dev-net", NodeSpec(id="signer-3", role=Role.VALIDATOR))

        info = running.get_network("dev-net")
        assert info.genesis == before
        assert (data_dir / "dev-net" / "genesis.json").read_text() == genesis_file
        assert (data_dir / "dev-net" / "nodes" / "signer-3" / "key").is_file()

    async def test_duplicate_node_id(
        self,
        running: NetworkOrchestrator,
        registry: InMemoryRegistry,
        runtime: InMemoryRuntime,
    ) -> None:
        """A taken id is a conflict and nothing is created."""
        before = registry.get("dev-net")
        runtime.calls.clear()

        with pytest.raises(ConflictError) as exc_info:
            await running.add_node("dev-net", NodeSpec(id="signer-1", role=Role.VALIDATOR))

        conflict = exc_info.value.conflicts[0]
        assert conflict.kind is ConflictKind.NODE_ID
        assert conflict.suggestions
        assert "signer-1" not in conflict.suggestions
        assert registry.get("dev-net") == before
        assert runtime.calls == []

    async def test_taken_address(self, running: NetworkOrchestrator) -> None:
        """An explicit address held by another node is a conflict."""
        with pytest.raises(ConflictError) as exc_info:
            await running.add_node(
                "dev-net", NodeSpec(id="rpc-1", role=Role.RPC, ip="172.20.0.10")
            )

        assert [c.kind for c in exc_info.value.conflicts] == [ConflictKind.NODE_IP]

    async def test_taken_port(self, running: NetworkOrchestrator) -> None:
        """An explicit port bound by the network is a conflict."""
        with pytest.raises(ConflictError) as exc_info:
            await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC, rpc_port=8545))

        assert [c.kind for c in exc_info.value.conflicts] == [ConflictKind.PORT]

    async def test_second_bootnode(self, running: NetworkOrchestrator) -> None:
        """Role limits apply to the grown network."""
        with pytest.raises(ValidationError):
            await running.add_node("dev-net", NodeSpec(id="boot-2", role=Role.BOOTNODE))

    async def test_failed_create_is_rolled_back(
        self,
        running: NetworkOrchestrator,
        registry: InMemoryRegistry,
        runtime: InMemoryRuntime,
        data_dir: Path,
    ) -> None:
        """The reservation, container and files of the new node are released."""
        runtime.fail_create_on = {"clique-dev-net-rpc-1"}
        runtime.orphan_on_failure = True

        with pytest.raises(ProvisioningError):
            await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

        stored = registry.get("dev-net")
        assert stored is not None
        assert stored.status is NetworkStatus.RUNNING
        assert "rpc-1" not in stored.nodes
        assert not (data_dir / "dev-net" / "nodes" / "rpc-1").exists()
        assert runtime.container_named("clique-dev-net-rpc-1") is None

        # The id can be used again once the engine cooperates.
        runtime.fail_create_on = set()
        record = await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))
        assert record.status is NodeStatus.RUNNING

    async def test_container_that_exits_is_removed(
        self,
        running: NetworkOrchestrator,
        registry: InMemoryRegistry,
        runtime: InMemoryRuntime,
    ) -> None:
        """A new node that does not stay up is removed again."""
        runtime.exit_on_start = {"clique-dev-net-rpc-1"}

        with pytest.raises(ProvisioningError):
            await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

        assert runtime.container_named("clique-dev-net-rpc-1") is None
        stored = registry.get("dev-net")
        assert stored is not None
        assert "rpc-1" not in stored.nodes

    async def test_settling_container_is_waited_for(
        self, running: NetworkOrchestrator, runtime: InMemoryRuntime
    ) -> None:
        """A new container that reports restarting at first still joins."""
        runtime.settling_inspections = 1

        record = await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

        assert record.status is NodeStatus.RUNNING

    async def test_requires_running_network(self, running: NetworkOrchestrator) -> None:
        """Nodes join running networks only."""
        await running.stop_network("dev-net")

        with pytest.raises(InvalidNetworkState):
            await running.add_node("dev-net", NodeSpec(id="rpc-1", role=Role.RPC))

    async def test_unknown_network(self, orchestrator: NetworkOrchestrator) -> None:
        """Unregistered ids are reported."""
        with pytest.raises(NetworkNotFound):
            await orchestrator.add_node("ghost", NodeSpec(id="rpc-1", role=Role.RPC))


class TestRemoveNode:
    """remove_node."""

    async def test_node_is_removed(
        self,
        running: NetworkOrchestrator,
        registry: InMemoryRegistry,
        runtime: InMemoryRuntime,
        data_dir: Path,
    ) -> None:
        """Stop, remove and forget one node. The others keep running."""
        runtime.calls.clear()

        await running.remove_node("dev-net", "signer-2")

        assert runtime.calls == [
            ("stop_resource", "clique-dev-net-signer-2"),
            ("remove_resource", "clique-dev-net-signer-2"),
        ]
        stored = registry.get("dev-net")
        assert stored is not None
        assert list(stored.nodes) == ["boot", "signer-1"]
        assert stored.status is NetworkStatus.RUNNING
        assert not (data_dir / "dev-net" / "nodes" / "signer-2").exists()
        assert len(runtime.containers) == 2

    async def test_last_signer(self, orchestrator: NetworkOrchestrator) -> None:
        """The only genesis signer cannot be removed."""
        await orchestrator.create_network(make_config(validators=1))

        with pytest.raises(LastValidatorRemoval):
            await orchestrator.remove_node("dev-net", "signer-1")

        assert "signer-1" in orchestrator.get_network("dev-net").nodes

    async def test_bootnode_as_only_signer(self, orchestrator: NetworkOrchestrator) -> None:
        """Without validators the bootnode is the signer and is protected."""
        await orchestrator.create_network(make_config(validators=0, plain=1))

        with pytest.raises(LastValidatorRemoval):
            await orchestrator.remove_node("dev-net", "boot")

    async def test_signer_with_peers(self, running: NetworkOrchestrator) -> None:
        """Removing one of two signers is allowed, the other then is protected."""
        await running.remove_node("dev-net", "signer-1")

        with pytest.raises(LastValidatorRemoval):
            await running.remove_node("dev-net", "signer-2")

    async def test_failed_removal(
        self,
        running: NetworkOrchestrator,
        registry: InMemoryRegistry,
        runtime: InMemoryRuntime,
    ) -> None:
        """The node stays in the record in `error`."""
        runtime.fail_remove_on = {"clique-dev-net-signer-2"}

        with pytest.raises(TeardownError):
            await running.remove_node("dev-net", "signer-2")

        stored = registry.get("dev-net")
        assert stored is not None
        assert stored.nodes["signer-2"].status is NodeStatus.ERROR

    async def test_unknown_node(self, running: NetworkOrchestrator) -> None:
        """Unknown node ids are reported."""
        with pytest.raises(NodeNotFound):
            await running.remove_node("dev-net", "ghost")


class TestNodeLogs:
    """node_logs."""

    async def test_tail(self, running: NetworkOrchestrator, runtime: InMemoryRuntime) -> None:
        """The trailing lines of the node's container are returned."""
        runtime.logs["clique-dev-net-signer-1"] = "Starting\nImported #1\nImported #2\n"

        assert await running.node_logs("dev-net", "signer-1", tail=2) == (
            "Imported #1\nImported #2\n"
        )
        assert await running.node_logs("dev-net", "signer-1") == (
            "Starting\nImported #1\nImported #2\n"
        )

    async def test_stopped_network(
        self, running: NetworkOrchestrator, runtime: InMemoryRuntime
    ) -> None:
        """Logs outlive the container process."""
        runtime.logs["clique-dev-net-boot"] = "Shutting down\n"
        await running.stop_network("dev-net")

        assert await running.node_logs("dev-net", "boot") == "Shutting down\n"

    async def test_unknown_node(self, running: NetworkOrchestrator) -> None:
        """Unknown node ids are reported."""
        with pytest.raises(NodeNotFound):
            await running.node_logs("dev-net", "ghost")

    async def test_vanished_container(
        self, running: NetworkOrchestrator, runtime: InMemoryRuntime
    ) -> None:
        """A container removed behind the orchestrator's back is reported."""
        runtime.containers.clear()

        with pytest.raises(ResourceNotFound):
            await running.node_logs("dev-net", "boot")
