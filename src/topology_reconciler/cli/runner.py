"""
Reconcile runner.

Purpose
One update run:
- load the topology file and check its architecture is supported
- load the current inventory
- settle application node metadata
- run the reconciliation engine
- write the change set, and push it unless this is a dry run

This is the composition layer. The engine stays free of I/O, the runner owns
files, the inventory source and the writer.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.serialization import topology_changes_to_json
from topology_reconciler.core.types import TopologyChanges
from topology_reconciler.engine.reconciler import EngineConfig, EngineInput, TopologyEngine
from topology_reconciler.inventory.plugins.base import InventoryPlugin, InventoryWriter
from topology_reconciler.inventory.store import InventoryState
from topology_reconciler.topology.builder import build_application_node_metadata
from topology_reconciler.topology.metadata import (
    ApplicationNodeMetadataMap,
    duplicate_aliases,
    find_fixmes,
    load_application_node_metadata,
    load_cabinet_vlans,
    metadata_from_inventory,
    save_application_node_metadata,
)
from topology_reconciler.topology.paddle import Paddle, load_paddle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """
    Runner configuration.

    sls_url
    SLS API root. Mutually exclusive with sls_file.

    sls_file
    Local SLS dump used instead of the service.

    token
    Bearer token for the SLS API.

    dry_run
    When True, the change set is written but never pushed.

    changes_path
    Where the change set json goes. None disables it.

    application_node_metadata_path
    Operator metadata file. When missing, metadata is seeded from the inventory
    and written to metadata_output_path if anything needs filling in.

    cabinet_vlans_path
    Cabinet VLAN assignments, required when cabinets are added.
    """

    sls_url: str | None = None
    sls_file: Path | None = None
    token: str | None = None
    dry_run: bool = False
    changes_path: Path | None = Path("topology_changes.json")
    timeout_seconds: int = 10
    application_node_metadata_path: Path | None = None
    metadata_output_path: Path = Path("application_node_metadata.yaml")
    cabinet_vlans_path: Path | None = None
    ignore_unknown_architectures: bool = False


class ReconcileRunner:
    """Run one update against an inventory source."""

    def __init__(
        self,
        source: InventoryPlugin,
        writer: InventoryWriter | None = None,
        config: RunnerConfig | None = None,
        engine_config: EngineConfig | None = None,
    ) -> None:
        self._source = source
        self._writer = writer
        self._config = config or RunnerConfig()
        self._engine_config = engine_config

    def run(self, ccj_file: Path) -> TopologyChanges:
        logger.info("Using CCJ file at %s", ccj_file)
        paddle = load_paddle(ccj_file)
        if not paddle.is_supported():
            raise MalformedInput(f"unsupported paddle architecture ({paddle.architecture})")

        current = self._source.load()
        if not current.networks:
            raise MalformedInput(
                "Refusing to continue as the current SLS state does not contain networking information"
            )

        metadata = self._application_node_metadata(paddle, current)

        cabinet_vlans = {}
        if self._config.cabinet_vlans_path is not None:
            cabinet_vlans = load_cabinet_vlans(self._config.cabinet_vlans_path)

        engine = TopologyEngine(
            EngineInput(
                current_state=current,
                paddle=paddle,
                application_node_metadata=metadata,
                cabinet_vlans=cabinet_vlans,
                ignore_unknown_architectures=self._config.ignore_unknown_architectures,
            ),
            config=self._engine_config,
        )
        changes = engine.determine_changes()

        if self._config.changes_path is not None:
            self._config.changes_path.write_text(
                json.dumps(topology_changes_to_json(changes), indent=2, sort_keys=True),
                encoding="utf-8",
            )
            logger.info("Change set written to %s", self._config.changes_path)

        if self._config.dry_run:
            logger.info("Dry run, not pushing changes")
            return changes

        if self._writer is None:
            logger.warning("No inventory writer configured, not pushing changes")
            return changes

        push_changes(self._writer, changes)
        return changes

    def _application_node_metadata(
        self,
        paddle: Paddle,
        current: InventoryState,
    ) -> ApplicationNodeMetadataMap:
        """
        Settle metadata for every application node in the topology file.

        Rules
        1) aliases already shared between application nodes in the inventory stop the run
        2) a provided metadata file wins, otherwise it is seeded from the inventory
        3) placeholders left in the metadata stop the run
        4) aliases shared between proposed application nodes stop the run
        """
        current_metadata = metadata_from_inventory(current)
        shared = duplicate_aliases(current_metadata)
        for alias, identifiers in sorted(shared.items()):
            logger.error("Alias %s is used by multiple application nodes: %s", alias, ",".join(identifiers))
        if shared:
            raise MalformedInput(
                "The current SLS state contains application nodes that share the same alias. "
                "Please reconcile before continuing."
            )

        path = self._config.application_node_metadata_path
        if path is not None:
            metadata = load_application_node_metadata(path)
        else:
            logger.info("No application node metadata file provided")
            metadata = build_application_node_metadata(paddle, current_metadata)

        fixmes = find_fixmes(metadata)
        if fixmes:
            for identifier in fixmes:
                logger.error("Application node %s has ~~FIXME~~ values", identifier)
            if path is None:
                save_application_node_metadata(self._config.metadata_output_path, metadata)
                path = self._config.metadata_output_path
            raise MalformedInput(
                "New application nodes are being added to the system which requires additional "
                f"metadata to be provided. Fill in all of the ~~FIXME~~ values in {path} and "
                f"pass it with --application-node-metadata"
            )

        shared = duplicate_aliases(metadata)
        for alias, identifiers in sorted(shared.items()):
            logger.error("Alias %s is used by multiple application nodes: %s", alias, ",".join(identifiers))
        if shared:
            raise MalformedInput(
                f"found duplicate application node aliases. Verify all application nodes being added "
                f"to the system have unique aliases defined in {path}"
            )

        return metadata


def push_changes(writer: InventoryWriter, changes: TopologyChanges) -> None:
    """Push added hardware, then modified networks."""
    if not changes.hardware_added:
        logger.info("No hardware added")
    else:
        logger.info("Adding new hardware to SLS (count %d)", len(changes.hardware_added))
        for record in changes.hardware_added:
            writer.put_hardware(record)

    if not changes.modified_networks:
        logger.info("No SLS network changes required")
    else:
        logger.info("Updating modified networks in SLS (count %d)", len(changes.modified_networks))
        for name in sorted(changes.modified_networks):
            writer.put_network(changes.modified_networks[name])
