"""
Inventory plugin interfaces.

Goal
Provide pluggable inventory ingestion so the reconciler is source agnostic.

Inventory is normalized into InventoryState and HardwareRecord objects.

We keep the interface narrow so it is easy to mock in tests.
"""

from __future__ import annotations

from typing import Protocol

from topology_reconciler.core.types import HardwareRecord, NetworkRecord
from topology_reconciler.inventory.store import InventoryState


class InventoryPlugin(Protocol):
    """
    Inventory plugin interface.

    load returns a fully populated InventoryState.
    """

    def load(self) -> InventoryState:
        """Load inventory into an InventoryState."""


class InventoryWriter(Protocol):
    """
    Inventory write interface.

    The runner uses it to push a change set. Writes are idempotent puts keyed by
    identifier or network name.
    """

    def put_hardware(self, record: HardwareRecord) -> None:
        """Create or replace a hardware record."""

    def put_network(self, network: NetworkRecord) -> None:
        """Create or replace a network."""
