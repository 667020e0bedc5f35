"""
Static inventory plugin.

Reads a local json file that contains an SLS dump.
This is useful for dev, tests, and offline planning.

Schema example
{
  "Hardware": {
    "x3000c0w14": {
      "Parent": "x3000c0",
      "Xname": "x3000c0w14",
      "Type": "comptype_mgmt_switch",
      "Class": "River",
      "TypeString": "MgmtSwitch",
      "ExtraProperties": {"Brand": "Aruba", "Model": "6300M", "Aliases": ["sw-leaf-bmc-001"]}
    }
  },
  "Networks": {
    "HMN": {"Name": "HMN", "IPRanges": ["10.254.0.0/17"], "Type": "ethernet", "ExtraProperties": {...}}
  }
}
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.serialization import inventory_state_to_json
from topology_reconciler.core.types import HardwareRecord, NetworkRecord
from topology_reconciler.inventory.hardware import hardware_from_sls
from topology_reconciler.inventory.network import network_from_sls
from topology_reconciler.inventory.plugins.base import InventoryPlugin, InventoryWriter
from topology_reconciler.inventory.store import InventoryState


def state_from_dump(data: Any) -> InventoryState:
    """
    Convert a parsed SLS dump into InventoryState.

    Hardware keys must match the Xname inside each object.
    """
    if not isinstance(data, dict):
        raise MalformedInput("SLS dump must be a json object")

    state = InventoryState()

    hardware = data.get("Hardware") or {}
    if not isinstance(hardware, dict):
        raise MalformedInput("SLS dump Hardware must be an object")
    for key, obj in hardware.items():
        if not isinstance(obj, dict):
            raise MalformedInput(f"hardware ({key}) must be an object")
        record = hardware_from_sls(obj)
        if record.identifier != key:
            raise MalformedInput(f"hardware key ({key}) does not match Xname ({record.identifier})")
        state.add_hardware(record)

    networks = data.get("Networks") or {}
    if not isinstance(networks, dict):
        raise MalformedInput("SLS dump Networks must be an object")
    for obj in networks.values():
        if not isinstance(obj, dict):
            raise MalformedInput("network entries must be objects")
        state.put_network(network_from_sls(obj))

    return state


@dataclass(frozen=True)
class StaticInventoryPlugin(InventoryPlugin):
    """
    Load inventory from a local SLS dump json file.

    path points to a json file that matches the schema described in the module docstring.
    """

    path: Path

    def load(self) -> InventoryState:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as err:
            raise MalformedInput(f"unable to read SLS dump {self.path}: {err}") from err
        except json.JSONDecodeError as err:
            raise MalformedInput(f"{self.path} is not valid json: {err}") from err
        return state_from_dump(data)

    def save(self, state: InventoryState) -> None:
        """
        Write the state back out in the same dump shape.

        The dump goes to a temp file next to path, which then replaces path.
        """
        payload = inventory_state_to_json(state)

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                suffix=".json",
                dir=self.path.parent,
                delete=False,
                encoding="utf-8",
            ) as f:
                temp_path = Path(f.name)
                f.write(json.dumps(payload, indent=2, sort_keys=True))

            temp_path.replace(self.path)
            temp_path = None
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)


@dataclass(frozen=True)
class StaticInventoryWriter(InventoryWriter):
    """
    Apply puts to a local SLS dump file.

    Every put reads the file, replaces one entry and writes it back, so the file
    is always a complete dump.
    """

    plugin: StaticInventoryPlugin

    def put_hardware(self, record: HardwareRecord) -> None:
        state = self.plugin.load()
        state.put_hardware(record)
        self.plugin.save(state)

    def put_network(self, network: NetworkRecord) -> None:
        state = self.plugin.load()
        state.put_network(network)
        self.plugin.save(state)
