"""
Command line entry point.

topology-reconciler update CCJ_FILE (--sls-url URL | --sls-file FILE) [options]
topology-reconciler diff STATE_A STATE_B

Any ReconcilerError is logged and the process exits 1 before anything is pushed.
An OSError from writing an output file is logged the same way.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Sequence

from topology_reconciler.cli.log_setup import setup_logging
from topology_reconciler.cli.runner import ReconcileRunner, RunnerConfig
from topology_reconciler.core.errors import GuardRailViolation, ReconcilerError
from topology_reconciler.engine.reconciler import EngineConfig
from topology_reconciler.engine.report import log_comparison_report
from topology_reconciler.inventory.diff import subtract, union
from topology_reconciler.inventory.plugins.base import InventoryPlugin, InventoryWriter
from topology_reconciler.inventory.plugins.sls import SlsInventoryPlugin, UrllibHttpClient
from topology_reconciler.inventory.plugins.static import StaticInventoryPlugin, StaticInventoryWriter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="topology-reconciler",
        description="Reconcile a cabling topology file against the SLS inventory",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    update = sub.add_parser("update", help="Add new hardware from a CCJ file to the inventory")
    update.add_argument("ccj_file", type=Path, help="Path to the CCJ (paddle) file")
    source = update.add_mutually_exclusive_group(required=True)
    source.add_argument("--sls-url", help="SLS API root, for example http://cray-sls/v1")
    source.add_argument("--sls-file", type=Path, help="Local SLS dump used instead of the service")
    update.add_argument(
        "--token",
        default=os.environ.get("SLS_TOKEN"),
        help="Bearer token for the SLS API, defaults to $SLS_TOKEN",
    )
    update.add_argument("--dry-run", action="store_true", help="Write the change set without pushing it")
    update.add_argument(
        "--changes-file",
        type=Path,
        default=Path("topology_changes.json"),
        help="Where to write the change set",
    )
    update.add_argument("--timeout", type=int, default=10, help="HTTP timeout in seconds")
    update.add_argument("--application-node-metadata", type=Path, help="Application node metadata YAML")
    update.add_argument("--cabinet-vlans", type=Path, help="Cabinet VLAN assignments YAML")
    update.add_argument(
        "--subnet-prefix-length",
        type=int,
        default=EngineConfig().subnet_prefix_length,
        help="Prefix length of new cabinet subnets",
    )
    update.add_argument(
        "--ignore-unknown-canu-hardware-architectures",
        action="store_true",
        help="Warn instead of failing on unknown device architectures",
    )

    diff = sub.add_parser("diff", help="Compare the hardware of two SLS dump files")
    diff.add_argument("state_a", type=Path)
    diff.add_argument("state_b", type=Path)

    return parser


def _sources(config: RunnerConfig) -> tuple[InventoryPlugin, InventoryWriter]:
    if config.sls_file is not None:
        plugin = StaticInventoryPlugin(config.sls_file)
        return plugin, StaticInventoryWriter(plugin)

    if config.sls_url is None:
        raise ValueError("either sls_url or sls_file must be set")
    sls = SlsInventoryPlugin(
        base_url=config.sls_url,
        token=config.token,
        http=UrllibHttpClient(timeout_seconds=config.timeout_seconds),
    )
    return sls, sls


def run_update(args: argparse.Namespace) -> None:
    config = RunnerConfig(
        sls_url=args.sls_url,
        sls_file=args.sls_file,
        token=args.token,
        dry_run=args.dry_run,
        changes_path=args.changes_file,
        timeout_seconds=args.timeout,
        application_node_metadata_path=args.application_node_metadata,
        cabinet_vlans_path=args.cabinet_vlans,
        ignore_unknown_architectures=args.ignore_unknown_canu_hardware_architectures,
    )
    source, writer = _sources(config)
    runner = ReconcileRunner(
        source,
        writer=writer,
        config=config,
        engine_config=EngineConfig(subnet_prefix_length=args.subnet_prefix_length),
    )
    runner.run(args.ccj_file)


def run_diff(args: argparse.Namespace) -> None:
    a = StaticInventoryPlugin(args.state_a).load()
    b = StaticInventoryPlugin(args.state_b).load()

    only_in_a = subtract(a, b)
    only_in_b = subtract(b, a)
    identical, differing = union(a, b)

    log_comparison_report(only_in_a, only_in_b, identical, differing)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "update":
            run_update(args)
        else:
            run_diff(args)
    except GuardRailViolation as err:
        logger.error("Error: %s", err)
        for identifier in err.identifiers:
            logger.error("  %s", identifier)
        return 1
    except (ReconcilerError, OSError) as err:
        logger.error("Error: %s", err)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
