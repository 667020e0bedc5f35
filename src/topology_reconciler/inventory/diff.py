"""
Inventory diff.

Set algebra over two hardware collections keyed by identifier.

subtract(a, b)
  hardware present in a that is missing from b

union(a, b)
  hardware present in both, split into identical and differing pairs

Calling subtract both ways plus union once gives the full symmetric picture
without re-deriving it.

Outputs are always sorted by identifier so reports and allocations are deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareProperties, HardwareRecord
from topology_reconciler.inventory.store import InventoryState

HardwareCollection = Union[InventoryState, Iterable[HardwareRecord]]
PropertiesEqual = Callable[[Optional[HardwareProperties], Optional[HardwareProperties]], bool]


@dataclass(frozen=True)
class HardwarePair:
    """
    The same identifier seen on both sides of a comparison.

    a is the record from the first collection, b from the second.
    """

    identifier: str
    a: HardwareRecord
    b: HardwareRecord


def _records(collection: HardwareCollection) -> List[HardwareRecord]:
    if isinstance(collection, InventoryState):
        return collection.all()
    return list(collection)


def _index(collection: HardwareCollection, side: str) -> Dict[str, HardwareRecord]:
    """Build a lookup map, refusing duplicate identifiers."""
    index: Dict[str, HardwareRecord] = {}
    for record in _records(collection):
        if record.identifier in index:
            raise MalformedInput(f"found duplicate xname {record.identifier} in set {side}")
        index[record.identifier] = record
    return index


def _structurally_equal(
    a: Optional[HardwareProperties],
    b: Optional[HardwareProperties],
) -> bool:
    # Dataclass equality is structural and also compares the variant type.
    return a == b


def subtract(a: HardwareCollection, b: HardwareCollection) -> List[HardwareRecord]:
    """Return hardware present in a that is missing from b, sorted by identifier."""
    b_index = _index(b, "B")
    a_index = _index(a, "A")

    missing = [record for ident, record in a_index.items() if ident not in b_index]
    missing.sort(key=lambda r: r.identifier)
    return missing


def union(
    a: HardwareCollection,
    b: HardwareCollection,
    properties_equal: PropertiesEqual | None = None,
) -> Tuple[List[HardwarePair], List[HardwarePair]]:
    """
    Pair up hardware present in both collections.

    Returns (identical, differing).

    A pair differs when the class differs, or when properties_equal says the
    payloads differ. The default comparison is full structural equality.
    The class check runs first, payloads are not compared once the class differs.
    """
    equal = properties_equal or _structurally_equal

    b_index = _index(b, "B")
    a_index = _index(a, "A")

    identical: List[HardwarePair] = []
    differing: List[HardwarePair] = []

    for ident, record_a in a_index.items():
        record_b = b_index.get(ident)
        if record_b is None:
            continue

        pair = HardwarePair(identifier=ident, a=record_a, b=record_b)

        if record_a.hardware_class != record_b.hardware_class:
            differing.append(pair)
            continue

        if not equal(record_a.properties, record_b.properties):
            differing.append(pair)
            continue

        identical.append(pair)

    identical.sort(key=lambda p: p.identifier)
    differing.sort(key=lambda p: p.identifier)
    return identical, differing
