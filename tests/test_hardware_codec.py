from __future__ import annotations

import pytest

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import (
    CabinetNetwork,
    CabinetProperties,
    HardwareClass,
    HardwareKind,
    MgmtSwitchConnectorProperties,
    MgmtSwitchProperties,
    NodeProperties,
)
from topology_reconciler.inventory.hardware import hardware_from_sls, hardware_to_sls, new_hardware


def test_decode_node():
    rec = hardware_from_sls(
        {
            "Parent": "x3000c0s19b0",
            "Xname": "x3000c0s19b0n0",
            "Type": "comptype_node",
            "Class": "River",
            "TypeString": "Node",
            "ExtraProperties": {"Role": "Application", "SubRole": "UAN", "Aliases": ["uan01"]},
        }
    )

    assert rec.kind == HardwareKind.node
    assert rec.parent_identifier == "x3000c0s19b0"
    assert rec.hardware_class == HardwareClass.river
    assert rec.properties == NodeProperties(role="Application", sub_role="UAN", aliases=["uan01"])
    assert rec.node_role() == "Application"


def test_decode_cabinet_networks():
    rec = hardware_from_sls(
        {
            "Xname": "x3000",
            "Class": "River",
            "ExtraProperties": {
                "Networks": {
                    "cn": {"HMN": {"CIDR": "10.107.0.0/22", "Gateway": "10.107.0.1", "VLan": 1513}}
                }
            },
        }
    )

    assert isinstance(rec.properties, CabinetProperties)
    assert rec.properties.networks["cn"]["HMN"] == CabinetNetwork(
        cidr="10.107.0.0/22", gateway="10.107.0.1", vlan=1513
    )


def test_encode_connector():
    rec = new_hardware(
        "x3000c0w14j38",
        HardwareClass.river,
        MgmtSwitchConnectorProperties(node_nics=["x3000c0s3b0"], vendor_name="1/1/38"),
    )

    assert hardware_to_sls(rec) == {
        "Parent": "x3000c0w14",
        "Xname": "x3000c0w14j38",
        "Type": "comptype_mgmt_switch_connector",
        "Class": "River",
        "TypeString": "MgmtSwitchConnector",
        "ExtraProperties": {"NodeNics": ["x3000c0s3b0"], "VendorName": "1/1/38"},
    }


def test_switch_ip_only_encoded_when_set():
    props = MgmtSwitchProperties(brand="Aruba", model="6300M", aliases=["sw-leaf-bmc-001"])
    rec = new_hardware("x3000c0w14", HardwareClass.river, props)
    assert "IP4addr" not in hardware_to_sls(rec)["ExtraProperties"]

    props.ip4_addr = "10.254.0.2"
    assert hardware_to_sls(rec)["ExtraProperties"]["IP4addr"] == "10.254.0.2"


def test_kinds_without_payload_keep_extra_properties():
    rec = hardware_from_sls({"Xname": "x3000m0", "Class": "River", "ExtraProperties": {"Foo": 1}})
    assert rec.properties is None
    assert hardware_to_sls(rec)["ExtraProperties"] == {"Foo": 1}

    bare = hardware_from_sls({"Xname": "x3000m1", "Class": "River"})
    assert "ExtraProperties" not in hardware_to_sls(bare)


def test_unmodelled_payload_keys_survive_encoding():
    raw = {
        "Parent": "x3000c0s3b0",
        "Xname": "x3000c0s3b0n0",
        "Type": "comptype_node",
        "Class": "River",
        "TypeString": "Node",
        "ExtraProperties": {"Role": "Compute", "NID": 1, "Aliases": ["nid000001"], "NodeNics": ["x3000c0w14j3"]},
    }

    rec = hardware_from_sls(raw)
    assert rec.properties.extra == {"NodeNics": ["x3000c0w14j3"]}
    assert hardware_to_sls(rec) == raw

    # typed fields win over the carried keys
    rec.properties.aliases = ["nid000002"]
    assert hardware_to_sls(rec)["ExtraProperties"]["Aliases"] == ["nid000002"]
    assert hardware_to_sls(rec)["ExtraProperties"]["NodeNics"] == ["x3000c0w14j3"]


def test_unmodelled_payload_keys_do_not_count_in_comparisons():
    a = NodeProperties(role="Compute", nid=1, extra={"NodeNics": ["x3000c0w14j3"]})
    assert a == NodeProperties(role="Compute", nid=1)


def test_payload_must_match_kind():
    with pytest.raises(MalformedInput):
        new_hardware("x3000", HardwareClass.river, NodeProperties(role="Compute"))


def test_malformed_hardware():
    with pytest.raises(MalformedInput):
        hardware_from_sls({"Class": "River"})
    with pytest.raises(MalformedInput):
        hardware_from_sls({"Xname": "x3000", "Class": "Lake"})
    with pytest.raises(MalformedInput):
        hardware_from_sls({"Xname": "x3000c0s1b0n0", "Class": "River", "ExtraProperties": {"NID": "one"}})
