"""
Clique network orchestrator CLI entry point.

Provision and manage private Clique proof-of-authority networks on the
local Docker engine.

Usage::

    python -m clique_orchestrator create network.yaml
    python -m clique_orchestrator list
    python -m clique_orchestrator status dev-net
    python -m clique_orchestrator add-node dev-net --node-id signer-3 --role validator
    python -m clique_orchestrator remove-node dev-net signer-3
    python -m clique_orchestrator logs dev-net signer-1 --tail 50
    python -m clique_orchestrator stop dev-net
    python -m clique_orchestrator start dev-net
    python -m clique_orchestrator delete dev-net

Offline helpers (no Docker engine needed)::

    python -m clique_orchestrator keygen ./keys/node-1 --ip 172.20.0.10 --p2p-port 30303
    python -m clique_orchestrator genesis --chain-id 1337 --validator 0x... --output genesis.json
    python -m clique_orchestrator add-validator genesis.json 0x...

Options:
    --settings    Path to a settings YAML file
    -v            Enable debug logging
    --no-color    Disable colored logging output
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from clique_orchestrator.config import OrchestratorSettings
from clique_orchestrator.genesis import GenesisBuilder, read_genesis, write_genesis
from clique_orchestrator.keys import KeyGenerator, write_identity
from clique_orchestrator.network import (
    ConsensusParams,
    NetworkInfo,
    NodeSpec,
    Role,
    load_network_config_file,
)
from clique_orchestrator.orchestrator import NetworkOrchestrator
from clique_orchestrator.types import ConflictError, OrchestratorError, ProvisioningError

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        return f"{colored_time} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the CLI with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    # Logs go to stderr so stdout stays parseable JSON.
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # Request lines from the engine client are noise at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def emit(payload: object) -> None:
    """Print a JSON document to stdout."""
    print(json.dumps(payload, indent=2, default=str))


def network_summary(info: NetworkInfo) -> dict[str, object]:
    """The short form of a network used by `list`."""
    return {
        "networkId": info.network_id,
        "chainId": info.config.chain_id,
        "subnet": info.config.subnet,
        "status": info.status.value,
        "nodes": len(info.nodes),
    }


def network_details(info: NetworkInfo) -> dict[str, object]:
    """A network record without private keys."""
    data = info.model_dump(mode="json", by_alias=True, exclude={"genesis"})
    for node in data["nodes"].values():
        node["credentials"].pop("privateKey", None)
    return data


def report_error(exc: OrchestratorError) -> None:
    """Log an orchestrator error with everything the caller can act on."""
    logger.error("%s", exc.message)
    if isinstance(exc, ConflictError):
        for conflict in exc.conflicts:
            hint = f" (try: {', '.join(conflict.suggestions)})" if conflict.suggestions else ""
            logger.error(
                "  %s [%s]: %s%s", conflict.kind.value, conflict.field, conflict.message, hint
            )
    if isinstance(exc, ProvisioningError):
        logger.error("  cause: %s", exc.cause)
        for failure in exc.rollback_errors:
            logger.error("  rollback: %s", failure)


# -----------------------------------------------------------------------------
# Network commands
# -----------------------------------------------------------------------------


async def run_network_command(args: argparse.Namespace, settings: OrchestratorSettings) -> None:
    """Open the registry and the engine, then run one network subcommand."""
    registry = settings.open_registry()
    try:
        async with settings.open_runtime() as runtime:
            orchestrator = settings.build_orchestrator(registry, runtime)
            await dispatch(orchestrator, args)
    finally:
        registry.close()


async def dispatch(orchestrator: NetworkOrchestrator, args: argparse.Namespace) -> None:
    """Run one network subcommand against an orchestrator."""
    match args.command:
        case "create":
            config = load_network_config_file(args.config)
            info = await orchestrator.create_network(config)
            emit(network_details(info))
        case "delete":
            await orchestrator.delete_network(args.network_id)
        case "list":
            emit([network_summary(info) for info in orchestrator.list_networks()])
        case "status":
            info = await orchestrator.network_status(args.network_id)
            emit(network_details(info))
        case "add-node":
            node = NodeSpec(
                id=args.node_id,
                role=args.role,
                ip=args.ip,
                rpc_port=args.rpc_port,
                p2p_port=args.p2p_port,
            )
            record = await orchestrator.add_node(args.network_id, node)
            emit(
                {
                    "id": record.id,
                    "ip": record.ip,
                    "rpcPort": record.rpc_port,
                    "p2pPort": record.p2p_port,
                    "address": record.credentials.prefixed_address,
                    "enode": record.credentials.discovery_url,
                }
            )
        case "remove-node":
            await orchestrator.remove_node(args.network_id, args.node)
        case "stop":
            await orchestrator.stop_network(args.network_id)
        case "start":
            await orchestrator.start_network(args.network_id)
        case "logs":
            output = await orchestrator.node_logs(args.network_id, args.node, args.tail)
            sys.stdout.write(output)


# -----------------------------------------------------------------------------
# Offline commands
# -----------------------------------------------------------------------------


def run_keygen(args: argparse.Namespace) -> None:
    """Generate (or adopt) a node identity and write its files."""
    keys = KeyGenerator()
    if args.private_key:
        credentials = keys.from_private_key(args.private_key, args.ip, args.p2p_port)
    else:
        credentials = keys.generate(args.ip, args.p2p_port)
    write_identity(args.directory, credentials)
    emit({"address": credentials.prefixed_address, "enode": credentials.discovery_url})


def run_genesis(args: argparse.Namespace) -> None:
    """Build a genesis from signer addresses."""
    genesis = GenesisBuilder().build_for_addresses(
        args.chain_id,
        args.validators,
        consensus=ConsensusParams(period=args.period, epoch=args.epoch),
    )
    if args.output is None:
        print(genesis.to_json())
    else:
        write_genesis(genesis, args.output)
        logger.info("Wrote genesis of chain %d to %s", args.chain_id, args.output)


def run_add_validator(args: argparse.Namespace) -> None:
    """Append a signer to an existing genesis file, in place."""
    genesis = GenesisBuilder().add_validator(read_genesis(args.genesis), args.address)
    write_genesis(genesis, args.genesis)


def build_parser() -> argparse.ArgumentParser:
    """The argument parser with every subcommand."""
    parser = argparse.ArgumentParser(
        prog="clique-orchestrator",
        description="Clique network orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path to a settings YAML file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Provision a network from a config file")
    create.add_argument("config", type=Path, help="Network config (YAML or JSON)")

    for name, help_text in (
        ("delete", "Tear a network down and forget it"),
        ("status", "Show a network with node states refreshed from the engine"),
        ("stop", "Stop every container of a network"),
        ("start", "Start a stopped network"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("network_id", help="Network id")

    commands.add_parser("list", help="List registered networks")

    add_node = commands.add_parser("add-node", help="Add a node to a running network")
    add_node.add_argument("network_id", help="Network id")
    add_node.add_argument("--node-id", required=True, help="Id of the new node")
    add_node.add_argument(
        "--role",
        required=True,
        choices=[role.value for role in Role],
        help="Role of the new node",
    )
    add_node.add_argument("--ip", default=None, help="Static IP (allocated when omitted)")
    add_node.add_argument("--rpc-port", type=int, default=None, help="Host RPC port")
    add_node.add_argument("--p2p-port", type=int, default=None, help="Host P2P port")

    remove_node = commands.add_parser("remove-node", help="Remove one node from a network")
    remove_node.add_argument("network_id", help="Network id")
    remove_node.add_argument("node", help="Node id")

    logs = commands.add_parser("logs", help="Print the client output of one node")
    logs.add_argument("network_id", help="Network id")
    logs.add_argument("node", help="Node id")
    logs.add_argument("--tail", type=int, default=None, help="Only the last N lines")

    keygen = commands.add_parser("keygen", help="Generate a node identity")
    keygen.add_argument("directory", type=Path, help="Directory for the identity files")
    keygen.add_argument("--ip", required=True, help="Address used in the enode URL")
    keygen.add_argument("--p2p-port", type=int, default=30303, help="P2P port (default: 30303)")
    keygen.add_argument("--private-key", default=None, help="Adopt this key instead")

    genesis = commands.add_parser("genesis", help="Build a Clique genesis")
    genesis.add_argument("--chain-id", type=int, required=True, help="Chain id")
    genesis.add_argument(
        "--validator",
        action="append",
        default=[],
        dest="validators",
        help="Signer address (can be repeated, order is kept)",
    )
    genesis.add_argument("--period", type=int, default=4, help="Block period in seconds")
    genesis.add_argument("--epoch", type=int, default=30000, help="Epoch length in blocks")
    genesis.add_argument("--output", type=Path, default=None, help="Output file (default: stdout)")

    add_validator = commands.add_parser("add-validator", help="Append a signer to a genesis file")
    add_validator.add_argument("genesis", type=Path, help="Genesis file, rewritten in place")
    add_validator.add_argument("address", help="Signer address")

    return parser


def run(args: argparse.Namespace) -> int:
    """Run the parsed command. Returns the process exit code."""
    try:
        match args.command:
            case "keygen":
                run_keygen(args)
            case "genesis":
                run_genesis(args)
            case "add-validator":
                run_add_validator(args)
            case _:
                settings = (
                    OrchestratorSettings.from_yaml_file(args.settings)
                    if args.settings is not None
                    else OrchestratorSettings()
                )
                asyncio.run(run_network_command(args, settings))
    except OrchestratorError as exc:
        report_error(exc)
        return 1
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename)
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    try:
        code = run(args)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
