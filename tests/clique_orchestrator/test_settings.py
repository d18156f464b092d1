"""Tests for host settings and component wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from clique_orchestrator.config import DATA_DIR_ENV, REGISTRY_FILE, OrchestratorSettings
from clique_orchestrator.network import NetworkStatus
from clique_orchestrator.provisioning import DEFAULT_IMAGE
from clique_orchestrator.registry import InMemoryRegistry, SQLiteRegistry
from clique_orchestrator.runtime import DockerEngineRuntime
from clique_orchestrator.types import ValidationError
from tests.clique_orchestrator.helpers import InMemoryRuntime, make_config

SETTINGS_YAML = """\
dataDir: {data_dir}
image: hyperledger/besu:24.1.0
baseRpcPort: 9545
baseP2pPort: 31303
ipOffset: 20
validation:
  checkChainId: false
roleLimits:
  validator: 4
retry:
  attempts: 8
  baseDelay: 0
"""


class TestDefaults:
    """Settings without a file."""

    def test_data_dir_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """The environment variable picks the data directory."""
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))

        settings = OrchestratorSettings()

        assert settings.data_dir == tmp_path
        assert settings.registry_path is None
        assert settings.image == DEFAULT_IMAGE
        assert (settings.base_rpc_port, settings.base_p2p_port) == (8545, 30303)

    def test_data_dir_in_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without the variable the data directory lives in the home directory."""
        monkeypatch.delenv(DATA_DIR_ENV, raising=False)

        assert OrchestratorSettings().data_dir == Path.home() / ".clique-orchestrator"


class TestFromYamlFile:
    """OrchestratorSettings.from_yaml_file."""

    def test_camel_case_keys(self, tmp_path: Path) -> None:
        """Top-level and nested keys are read in camelCase."""
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML.format(data_dir=tmp_path / "data"))

        settings = OrchestratorSettings.from_yaml_file(path)

        assert settings.data_dir == tmp_path / "data"
        assert settings.image == "hyperledger/besu:24.1.0"
        assert settings.base_rpc_port == 9545
        assert settings.base_p2p_port == 31303
        assert settings.ip_offset == 20
        assert settings.validation.check_chain_id is False
        assert settings.validation.check_subnet is True
        assert settings.role_limits.validator == 4
        assert settings.retry.attempts == 8
        assert settings.retry.base_delay == 0

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file gives the defaults."""
        path = tmp_path / "settings.yaml"
        path.write_text("")

        assert OrchestratorSettings.from_yaml_file(path).image == DEFAULT_IMAGE

    def test_unknown_key(self, tmp_path: Path) -> None:
        """Typos are rejected, not ignored."""
        path = tmp_path / "settings.yaml"
        path.write_text("imgae: besu\n")

        with pytest.raises(ValidationError) as exc_info:
            OrchestratorSettings.from_yaml_file(path)

        assert exc_info.value.field == "imgae"

    def test_out_of_range_port(self, tmp_path: Path) -> None:
        """Field constraints are reported with the offending key."""
        path = tmp_path / "settings.yaml"
        path.write_text("baseRpcPort: 70000\n")

        with pytest.raises(ValidationError) as exc_info:
            OrchestratorSettings.from_yaml_file(path)

        assert exc_info.value.field == "baseRpcPort"
        assert exc_info.value.value == 70000

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """A YAML list is not a settings file."""
        path = tmp_path / "settings.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ValidationError, match="mapping"):
            OrchestratorSettings.from_yaml_file(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files are not silently replaced by defaults."""
        with pytest.raises(FileNotFoundError):
            OrchestratorSettings.from_yaml_file(tmp_path / "absent.yaml")


class TestFactories:
    """Registry, runtime and orchestrator construction."""

    def test_registry_in_data_dir(self, tmp_path: Path) -> None:
        """The default registry is a SQLite file inside the data directory."""
        settings = OrchestratorSettings(data_dir=tmp_path / "data")

        registry = settings.open_registry()
        try:
            assert isinstance(registry, SQLiteRegistry)
            assert (tmp_path / "data" / REGISTRY_FILE).is_file()
        finally:
            registry.close()

    def test_explicit_registry_path(self, tmp_path: Path) -> None:
        """registry_path overrides the location."""
        settings = OrchestratorSettings(
            data_dir=tmp_path / "data", registry_path=tmp_path / "state" / "nets.db"
        )

        registry = settings.open_registry()
        registry.close()

        assert (tmp_path / "state" / "nets.db").is_file()

    def test_in_memory_registry(self, tmp_path: Path) -> None:
        """":memory:" selects the process-local registry."""
        settings = OrchestratorSettings(data_dir=tmp_path, registry_path=Path(":memory:"))

        assert isinstance(settings.open_registry(), InMemoryRegistry)

    async def test_runtime(self, tmp_path: Path) -> None:
        """The runtime targets the configured socket."""
        settings = OrchestratorSettings(data_dir=tmp_path, docker_socket="/tmp/engine.sock")

        async with settings.open_runtime() as runtime:
            assert isinstance(runtime, DockerEngineRuntime)

    def test_orchestrator_wiring(self, tmp_path: Path) -> None:
        """Every component receives its part of the settings."""
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML.format(data_dir=tmp_path / "data"))
        settings = OrchestratorSettings.from_yaml_file(path)
        registry = InMemoryRegistry()
        runtime = InMemoryRuntime()

        orchestrator = settings.build_orchestrator(registry, runtime)

        assert orchestrator.registry is registry
        assert orchestrator.runtime is runtime
        assert orchestrator.files.data_dir == tmp_path / "data"
        assert orchestrator.provisioner.image == "hyperledger/besu:24.1.0"
        assert orchestrator.allocator.base_rpc_port == 9545
        assert orchestrator.allocator.ip_offset == 20
        assert orchestrator.validator.allocator is orchestrator.allocator
        assert orchestrator.validator.options.check_chain_id is False
        assert orchestrator.validator.limits.validator == 4
        assert orchestrator.retry.attempts == 8

    async def test_disabled_chain_id_check(self, tmp_path: Path) -> None:
        """Two networks may share a chain id when the host allows it."""
        settings = OrchestratorSettings(
            data_dir=tmp_path, validation={"check_chain_id": False}
        )
        orchestrator = settings.build_orchestrator(InMemoryRegistry(), InMemoryRuntime())

        await orchestrator.create_network(make_config())
        twin = await orchestrator.create_network(
            make_config("twin-net", subnet="172.21.0.0/24")
        )

        assert twin.status is NetworkStatus.RUNNING
        assert twin.config.chain_id == 1337
