"""
Cabinet lookup.

Maps cabinet kinds to the cabinet identifiers of that kind. The hardware builder
uses it to answer two questions:
which class is this cabinet, and can it hold air cooled hardware at all.

The topology file does not state cabinet kinds directly. determine_cabinet_lookup
infers liquid cooled kinds from the chassis controllers present in each cabinet,
every other cabinet is River.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareClass
from topology_reconciler.topology.paddle import Paddle, extract_number


class CabinetKind(str, Enum):
    """
    Cabinet kinds.

    River, Hill and Mountain are generic kinds.
    The EX names are specific models, recorded on the cabinet record.
    """

    river = "River"
    hill = "Hill"
    mountain = "Mountain"
    ex2000 = "EX2000"
    ex2500 = "EX2500"
    ex3000 = "EX3000"
    ex4000 = "EX4000"

    def hardware_class(self) -> HardwareClass:
        if self in {CabinetKind.river}:
            return HardwareClass.river
        if self in {CabinetKind.hill, CabinetKind.ex2000, CabinetKind.ex2500}:
            return HardwareClass.hill
        return HardwareClass.mountain

    def is_model(self) -> bool:
        """Return True for specific cabinet models."""
        return self.value.startswith("EX")


# Sorted chassis ordinals seen in a liquid cooled cabinet -> inferred kind.
_LIQUID_COOLED_LAYOUTS: Dict[tuple[int, ...], CabinetKind] = {
    (0, 1, 2, 3, 4, 5, 6, 7): CabinetKind.mountain,
    (1, 3): CabinetKind.hill,
    (0,): CabinetKind.ex2500,
    (0, 1): CabinetKind.ex2500,
    (0, 1, 3): CabinetKind.ex2500,
}


@dataclass
class CabinetLookup:
    """Cabinet identifiers grouped by kind."""

    cabinets: Dict[CabinetKind, List[str]] = field(default_factory=dict)

    def add(self, kind: CabinetKind, cabinet: str) -> None:
        self.cabinets.setdefault(kind, []).append(cabinet)

    def kind_of(self, cabinet: str) -> CabinetKind:
        for kind, members in self.cabinets.items():
            if cabinet in members:
                return kind
        raise MalformedInput(f"cabinet ({cabinet}) does not exist in cabinet lookup data")

    def exists(self, cabinet: str) -> bool:
        return any(cabinet in members for members in self.cabinets.values())

    def class_of(self, cabinet: str) -> HardwareClass:
        return self.kind_of(cabinet).hardware_class()

    def all_cabinets(self) -> List[tuple[CabinetKind, str]]:
        """Return (kind, cabinet) pairs sorted by cabinet identifier."""
        pairs = [(kind, cab) for kind, members in self.cabinets.items() for cab in members]
        return sorted(pairs, key=lambda p: p[1])


def determine_cabinet_lookup(paddle: Paddle) -> CabinetLookup:
    """
    Infer cabinet kinds from the topology file.

    1) every cmm (chassis controller) marks its cabinet as liquid cooled
    2) the sorted chassis list of a liquid cooled cabinet selects its kind
    3) every other rack that is not a CDU is a River cabinet
    """
    lookup = CabinetLookup()
    chassis_by_cabinet: Dict[str, List[int]] = {}

    try:
        for node in paddle.topology:
            if node.architecture != "cmm":
                continue
            cabinet = f"x{extract_number(node.location.rack)}"
            chassis = extract_number(node.location.elevation)
            chassis_by_cabinet.setdefault(cabinet, []).append(chassis)

        for cabinet in sorted(chassis_by_cabinet):
            layout = tuple(sorted(chassis_by_cabinet[cabinet]))
            kind = _LIQUID_COOLED_LAYOUTS.get(layout)
            if kind is None:
                raise MalformedInput(
                    f"unable to infer liquid-cooled cabinet kind with chassis list {list(layout)}"
                )
            lookup.add(kind, cabinet)

        river: set[str] = set()
        for node in paddle.topology:
            if node.location.rack.lower().startswith("cdu"):
                continue
            cabinet = f"x{extract_number(node.location.rack)}"
            if cabinet not in chassis_by_cabinet:
                river.add(cabinet)
    except ValueError as err:
        raise MalformedInput(f"unable to extract cabinet ordinal due to: {err}") from err

    for cabinet in sorted(river):
        lookup.add(CabinetKind.river, cabinet)

    return lookup
