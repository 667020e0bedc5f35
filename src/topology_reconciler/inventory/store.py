"""
Inventory state.

We keep a simple in memory container as the normalized view of an SLS state.
Inventory sources fill it, the hardware builder fills the expected one, and the
reconciler reads both.

Why not keep the raw SLS payload
We want a stable internal representation with typed hardware payloads so the
engine never deals with loosely typed dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareRecord, NetworkRecord


@dataclass
class InventoryState:
    """
    Hardware keyed by identifier plus networks keyed by name.

    Identifiers are unique. add_hardware refuses a duplicate instead of
    silently replacing it.
    """

    hardware: Dict[str, HardwareRecord] = field(default_factory=dict)
    networks: Dict[str, NetworkRecord] = field(default_factory=dict)

    def add_hardware(self, record: HardwareRecord) -> None:
        """Add a hardware record. Raises MalformedInput on a duplicate identifier."""
        if record.identifier in self.hardware:
            raise MalformedInput(f"found duplicate xname {record.identifier}")
        self.hardware[record.identifier] = record

    def put_hardware(self, record: HardwareRecord) -> None:
        """Add or replace a hardware record."""
        self.hardware[record.identifier] = record

    def get(self, identifier: str) -> Optional[HardwareRecord]:
        """Return the hardware record if present."""
        return self.hardware.get(identifier)

    def all(self) -> List[HardwareRecord]:
        """Return all hardware sorted by identifier."""
        return [self.hardware[k] for k in sorted(self.hardware)]

    def identifiers(self) -> List[str]:
        """Return sorted identifiers. Useful for deterministic outputs."""
        return sorted(self.hardware.keys())

    def put_network(self, network: NetworkRecord) -> None:
        """Add or replace a network."""
        self.networks[network.name] = network

    def network(self, name: str) -> Optional[NetworkRecord]:
        """Return the network if present."""
        return self.networks.get(name)

    def filtered(self, keep: Callable[[HardwareRecord], bool]) -> "InventoryState":
        """
        Return a new state holding only the hardware for which keep(record) is True.

        Networks are shared with the source state, not copied.
        """
        out = InventoryState(networks=self.networks)
        for record in self.hardware.values():
            if keep(record):
                out.hardware[record.identifier] = record
        return out

    def __len__(self) -> int:
        return len(self.hardware)

    def __iter__(self) -> Iterator[HardwareRecord]:
        """Allow for loops over InventoryState, in identifier order."""
        return iter(self.all())


def state_from_records(records: Iterable[HardwareRecord]) -> InventoryState:
    """Build an InventoryState from hardware records, enforcing unique identifiers."""
    state = InventoryState()
    for record in records:
        state.add_hardware(record)
    return state
