"""
Topology description model.

The topology file (CCJ, also called paddle) is produced by the vendor cabling
tool. It lists every device with its rack location and its cabled ports.

Schema example
{
  "architecture": "network_v2",
  "canu_version": "1.6.5",
  "shcd_file": "system.xlsx",
  "updated_at": "2022-08-01 12:00:00",
  "topology": [
    {
      "common_name": "sw-leaf-bmc-001",
      "id": 14,
      "architecture": "river_bmc_leaf",
      "model": "6300M_JL762A",
      "type": "switch",
      "vendor": "aruba",
      "location": {"rack": "x3000", "elevation": "u14"},
      "ports": [{"port": 48, "slot": "", "speed": 1, "destination_node_id": 3, "destination_port": 1, "destination_slot": ""}]
    }
  ]
}
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from topology_reconciler.core.errors import MalformedInput

# Paddle architectures the builder knows how to read.
SUPPORTED_PADDLE_ARCHITECTURES = frozenset({"network_v1", "network_v2", "network_v2_tds"})


@dataclass
class Location:
    """
    Where a device physically sits.

    rack is a cabinet (x3000) or a CDU (cdu0).
    elevation is the rack unit (u14), PDU (p0) or chassis (c1).
    parent and sub_location are only set for multi node chassis.
    """

    rack: str
    elevation: str
    parent: str = ""
    sub_location: str = ""


@dataclass
class Port:
    """One cabled port. destination_node_id refers to another TopologyNode id."""

    port: int
    slot: str
    destination_node_id: int
    destination_port: int
    destination_slot: str = ""
    speed: int = 0


@dataclass
class TopologyNode:
    """One device in the topology file."""

    common_name: str
    id: int
    architecture: str
    type: str
    location: Location
    model: str = ""
    vendor: str = ""
    ports: List[Port] = field(default_factory=list)

    def find_ports(self, slot: str) -> List[Port]:
        """Return the ports cabled from the given slot."""
        return [p for p in self.ports if p.slot == slot]


@dataclass
class Paddle:
    """The whole topology file."""

    architecture: str
    topology: List[TopologyNode] = field(default_factory=list)
    canu_version: str = ""
    shcd_file: str = ""
    updated_at: str = ""

    def find_node_by_id(self, node_id: int) -> Optional[TopologyNode]:
        for node in self.topology:
            if node.id == node_id:
                return node
        return None

    def is_supported(self) -> bool:
        return self.architecture in SUPPORTED_PADDLE_ARCHITECTURES


def _port_from_dict(obj: dict[str, Any]) -> Port:
    return Port(
        port=int(obj.get("port", 0)),
        slot=str(obj.get("slot", "") or ""),
        destination_node_id=int(obj.get("destination_node_id", 0)),
        destination_port=int(obj.get("destination_port", 0)),
        destination_slot=str(obj.get("destination_slot", "") or ""),
        speed=int(obj.get("speed", 0) or 0),
    )


def _node_from_dict(obj: dict[str, Any]) -> TopologyNode:
    location_obj = obj.get("location", {}) or {}
    node = TopologyNode(
        common_name=str(obj.get("common_name", "")),
        id=int(obj["id"]),
        architecture=str(obj.get("architecture", "")),
        type=str(obj.get("type", "")),
        model=str(obj.get("model", "") or ""),
        vendor=str(obj.get("vendor", "") or ""),
        location=Location(
            rack=str(location_obj.get("rack", "")),
            elevation=str(location_obj.get("elevation", "")),
            parent=str(location_obj.get("parent", "") or ""),
            sub_location=str(location_obj.get("sub_location", "") or ""),
        ),
    )

    for raw in obj.get("ports", []) or []:
        if isinstance(raw, dict):
            node.ports.append(_port_from_dict(raw))

    return node


def paddle_from_dict(data: Any) -> Paddle:
    """Convert a parsed topology file into a Paddle."""
    if not isinstance(data, dict):
        raise MalformedInput("topology file must be a json object")

    paddle = Paddle(
        architecture=str(data.get("architecture", "")),
        canu_version=str(data.get("canu_version", "") or ""),
        shcd_file=str(data.get("shcd_file", "") or ""),
        updated_at=str(data.get("updated_at", "") or ""),
    )

    for idx, raw in enumerate(data.get("topology", []) or []):
        if not isinstance(raw, dict):
            raise MalformedInput(f"topology item {idx} must be an object")
        try:
            paddle.topology.append(_node_from_dict(raw))
        except (KeyError, TypeError, ValueError) as err:
            raise MalformedInput(f"topology item {idx} is malformed: {err}") from err

    return paddle


def load_paddle(path: Path) -> Paddle:
    """Read a topology file from disk."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as err:
        raise MalformedInput(f"unable to read topology file {path}: {err}") from err
    except json.JSONDecodeError as err:
        raise MalformedInput(f"{path} is not valid json: {err}") from err
    return paddle_from_dict(data)


_NUMBER = re.compile(r"(\d+)")


def extract_number(raw: str) -> int:
    """
    Return the first run of digits in a location string.

    x3000 gives 3000, u07 gives 7, p1 gives 1.
    """
    m = _NUMBER.search(raw.lower())
    if not m:
        raise ValueError(f"no number found in ({raw})")
    return int(m.group(1))
