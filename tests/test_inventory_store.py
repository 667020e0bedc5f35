import pytest

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareClass, NodeProperties
from topology_reconciler.inventory.hardware import new_hardware
from topology_reconciler.inventory.store import InventoryState


def test_inventory_state_add_get():
    state = InventoryState()

    rec = new_hardware(
        "x3000c0s3b0n0",
        HardwareClass.river,
        NodeProperties(role="Compute", nid=1, aliases=["nid000001"]),
    )

    state.add_hardware(rec)
    assert state.get("x3000c0s3b0n0") is not None
    assert state.identifiers() == ["x3000c0s3b0n0"]
    assert len(state) == 1


def test_inventory_state_refuses_duplicates():
    state = InventoryState()
    state.add_hardware(new_hardware("x3000", HardwareClass.river))

    with pytest.raises(MalformedInput):
        state.add_hardware(new_hardware("x3000", HardwareClass.river))

    state.put_hardware(new_hardware("x3000", HardwareClass.hill))
    assert state.get("x3000").hardware_class == HardwareClass.hill


def test_inventory_state_filtered_and_ordered():
    state = InventoryState()
    state.add_hardware(new_hardware("x9000", HardwareClass.mountain))
    state.add_hardware(new_hardware("x3001", HardwareClass.river))
    state.add_hardware(new_hardware("x3000", HardwareClass.river))

    river = state.filtered(lambda r: r.hardware_class == HardwareClass.river)

    assert [r.identifier for r in river] == ["x3000", "x3001"]
    assert river.networks is state.networks
    assert len(state) == 3
