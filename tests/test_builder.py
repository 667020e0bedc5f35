from __future__ import annotations

import pytest

from topology_reconciler.core.errors import MalformedInput, UnknownArchitecture
from topology_reconciler.core.types import (
    CabinetProperties,
    HardwareClass,
    HardwareKind,
    MgmtHLSwitchProperties,
    MgmtSwitchConnectorProperties,
    MgmtSwitchProperties,
    NodeProperties,
    RouterBMCProperties,
)
from topology_reconciler.topology.builder import (
    build_application_node_metadata,
    build_expected_state,
    build_hardware,
    build_node_identifier,
    build_node_properties,
    dense_chassis_bmc_ordinal,
)
from topology_reconciler.topology.cabinets import CabinetKind, CabinetLookup
from topology_reconciler.topology.metadata import ApplicationNodeMetadata, placeholder_metadata
from topology_reconciler.topology.paddle import paddle_from_dict

LEAF_BMC_ID = 1


def _device(
    node_id: int,
    name: str,
    architecture: str,
    rack: str,
    elevation: str,
    type_: str = "server",
    bmc_port: int | None = None,
    **location: str,
) -> dict:
    ports = []
    if bmc_port is not None:
        ports.append(
            {"port": 1, "slot": "bmc", "destination_node_id": LEAF_BMC_ID, "destination_port": bmc_port}
        )
    return {
        "common_name": name,
        "id": node_id,
        "architecture": architecture,
        "type": type_,
        "vendor": "aruba",
        "model": "6300M_JL762A",
        "location": {"rack": rack, "elevation": elevation, **location},
        "ports": ports,
    }


def _leaf_bmc() -> dict:
    return _device(LEAF_BMC_ID, "sw-leaf-bmc-001", "river_bmc_leaf", "x3000", "u14", "switch")


def _paddle(devices: list[dict]):
    return paddle_from_dict({"architecture": "network_v2", "topology": [_leaf_bmc()] + devices})


def _river(*cabinets: str) -> CabinetLookup:
    lookup = CabinetLookup()
    for cabinet in cabinets:
        lookup.add(CabinetKind.river, cabinet)
    return lookup


def test_node_properties_from_common_name():
    paddle = _paddle(
        [
            _device(2, "ncn-m001", "river_ncn_node_4_port", "x3000", "u01"),
            _device(3, "ncn-s002", "river_ncn_node_4_port", "x3000", "u02"),
            _device(4, "cn007", "river_compute_node", "x3000", "u07", "node"),
            _device(5, "uan001", "river_ncn_node_4_port", "x3000", "u19"),
        ]
    )
    props = {n.common_name: build_node_properties(n) for n in paddle.topology[1:]}

    assert props["ncn-m001"] == NodeProperties(role="Management", sub_role="Master", aliases=["ncn-m001"])
    assert props["ncn-s002"].sub_role == "Storage"
    assert props["cn007"] == NodeProperties(role="Compute", nid=7, aliases=["nid000007"])
    assert props["uan001"] == NodeProperties(role="Application")


def test_dense_chassis_bmc_ordinal_boundaries():
    assert dense_chassis_bmc_ordinal(1) == 1
    assert dense_chassis_bmc_ordinal(4) == 4
    assert dense_chassis_bmc_ordinal(5) == 1
    assert dense_chassis_bmc_ordinal(8) == 4

    with pytest.raises(MalformedInput):
        dense_chassis_bmc_ordinal(0)


def test_node_identifiers():
    cmc = _device(10, "SubRack002-CMC", "subrack", "x3000", "u27", "subrack")
    dense = _device(11, "cn006", "river_compute_node", "x3000", "u28", "node", parent="SubRack-002-CMC")
    dense["ports"].append({"port": 2, "slot": "cmc", "destination_node_id": 10, "destination_port": 1})
    left = _device(12, "cn009", "river_compute_node", "x3000", "u30", "node", sub_location="L")
    right = _device(13, "cn010", "river_compute_node", "x3000", "u30", "node", sub_location="R")
    single = _device(14, "cn011", "river_compute_node", "x3001", "u03", "node")

    paddle = _paddle([cmc, dense, left, right, single])
    ids = {
        n.common_name: build_node_identifier(n, paddle, build_node_properties(n))
        for n in paddle.topology
        if n.type == "node"
    }

    assert ids == {
        "cn006": "x3000c0s27b2n0",
        "cn009": "x3000c0s30b1n0",
        "cn010": "x3000c0s30b2n0",
        "cn011": "x3001c0s3b0n0",
    }


def test_dense_chassis_requires_compute_node():
    cmc = _device(10, "SubRack002-CMC", "subrack", "x3000", "u27", "subrack")
    uan = _device(11, "uan005", "river_ncn_node_4_port", "x3000", "u28", parent="SubRack-002-CMC")
    uan["ports"].append({"port": 2, "slot": "cmc", "destination_node_id": 10, "destination_port": 1})
    paddle = _paddle([cmc, uan])

    node = paddle.topology[2]
    with pytest.raises(MalformedInput):
        build_node_identifier(node, paddle, build_node_properties(node))


def test_switches_and_controllers():
    paddle = _paddle(
        [
            _device(20, "sw-spine-001", "spine", "x3000", "u41", "switch", sub_location="R"),
            _device(21, "cn-edge-001", "customer_edge_router", "x3000", "u39", "switch"),
            _device(22, "sw-hsn-001", "slingshot_hsn_switch", "x3000", "u24", "switch"),
            _device(23, "pdu-x3000-000", "pdu", "x3000", "p0", "pdu"),
            _device(24, "kvm-001", "kvm", "x3000", "u36", "kvm"),
        ]
    )
    paddle.topology[2].vendor = "arista"
    built = {
        n.common_name: build_hardware(n, paddle, _river("x3000"), {})
        for n in paddle.topology
    }

    leaf = built["sw-leaf-bmc-001"]
    assert leaf.identifier == "x3000c0w14"
    assert isinstance(leaf.properties, MgmtSwitchProperties)
    assert leaf.properties.brand == "Aruba"
    assert leaf.properties.snmp_auth_password == "vault://hms-creds/x3000c0w14"

    spine = built["sw-spine-001"]
    assert spine.identifier == "x3000c0h41s2"
    assert spine.properties == MgmtHLSwitchProperties(
        brand="Aruba", model="6300M_JL762A", aliases=["sw-spine-001"]
    )

    edge = built["cn-edge-001"]
    assert edge.identifier == "x3000c0h39s1"
    assert edge.properties.brand == "Arista"
    assert edge.properties.model == ""

    hsn = built["sw-hsn-001"]
    assert hsn.identifier == "x3000c0r24b0"
    assert hsn.properties == RouterBMCProperties(
        username="vault://hms-creds/x3000c0r24b0", password="vault://hms-creds/x3000c0r24b0"
    )

    assert built["pdu-x3000-000"].identifier == "x3000m0"
    assert built["kvm-001"] is None


def test_switch_alias_override():
    paddle = _paddle([])
    rec = build_hardware(paddle.topology[0], paddle, _river("x3000"), {}, {"x3000c0w14": ["sw-leaf-bmc-99"]})
    assert rec.properties.aliases == ["sw-leaf-bmc-99"]


def test_unknown_architecture():
    paddle = _paddle([_device(30, "mystery", "flux_capacitor", "x3000", "u10", "gadget")])
    with pytest.raises(UnknownArchitecture):
        build_hardware(paddle.topology[1], paddle, _river("x3000"), {})


def test_application_node_needs_metadata():
    paddle = _paddle([_device(5, "uan001", "river_ncn_node_4_port", "x3000", "u19", bmc_port=19)])
    node = paddle.topology[1]

    with pytest.raises(MalformedInput):
        build_hardware(node, paddle, _river("x3000"), {})
    with pytest.raises(MalformedInput):
        build_hardware(
            node, paddle, _river("x3000"), {"x3000c0s19b0n0": ApplicationNodeMetadata(sub_role="UAN")}
        )

    rec = build_hardware(
        node,
        paddle,
        _river("x3000"),
        {"x3000c0s19b0n0": ApplicationNodeMetadata(sub_role="UAN", aliases=["uan01"])},
    )
    assert rec.properties == NodeProperties(role="Application", sub_role="UAN", aliases=["uan01"])


def test_expected_state():
    paddle = _paddle(
        [
            _device(2, "cn001", "river_compute_node", "x3000", "u03", "node", bmc_port=3),
            _device(3, "pdu-x3000-000", "pdu", "x3000", "p0", "pdu"),
            _device(4, "cmm-x1000-000", "cmm", "x1000", "c0", "chassis"),
        ]
    )
    lookup = _river("x3000")
    lookup.add(CabinetKind.ex4000, "x1000")

    state = build_expected_state(paddle, lookup, {})

    assert state.identifiers() == [
        "x1000",
        "x1000c0",
        "x1000c0b0",
        "x3000",
        "x3000c0s3b0n0",
        "x3000c0w14",
        "x3000c0w14j3",
        "x3000m0",
    ]

    connector = state.get("x3000c0w14j3")
    assert connector.properties == MgmtSwitchConnectorProperties(node_nics=["x3000c0s3b0"], vendor_name="1/1/3")

    assert state.get("x1000c0b0").hardware_class == HardwareClass.mountain
    assert state.get("x1000c0").kind == HardwareKind.chassis
    assert state.get("x1000").properties == CabinetProperties(model="EX4000")
    assert state.get("x3000").properties == CabinetProperties()
    assert state.networks == {}


def test_expected_state_rejects_unknown_cabinet_and_duplicates():
    paddle = _paddle([_device(2, "cn001", "river_compute_node", "x3001", "u03", "node")])
    with pytest.raises(MalformedInput, match="unknown cabinet"):
        build_expected_state(paddle, _river("x3000"), {})

    paddle = _paddle(
        [
            _device(2, "cn001", "river_compute_node", "x3000", "u03", "node"),
            _device(3, "cn002", "river_compute_node", "x3000", "u03", "node"),
        ]
    )
    with pytest.raises(MalformedInput, match="duplicate"):
        build_expected_state(paddle, _river("x3000"), {})


def test_expected_state_can_skip_unknown_architectures():
    paddle = _paddle([_device(30, "mystery", "flux_capacitor", "x3000", "u10", "gadget")])

    with pytest.raises(UnknownArchitecture):
        build_expected_state(paddle, _river("x3000"), {})

    state = build_expected_state(paddle, _river("x3000"), {}, ignore_unknown_architectures=True)
    assert state.identifiers() == ["x3000", "x3000c0w14"]


def test_application_metadata_seeding():
    paddle = _paddle(
        [
            _device(2, "uan001", "river_ncn_node_4_port", "x3000", "u19"),
            _device(3, "uan002", "river_ncn_node_4_port", "x3000", "u20"),
            _device(4, "cn001", "river_compute_node", "x3000", "u03", "node"),
        ]
    )
    known = {"x3000c0s19b0n0": ApplicationNodeMetadata(sub_role="UAN", aliases=["uan01"])}

    assert build_application_node_metadata(paddle, known) == {
        "x3000c0s19b0n0": ApplicationNodeMetadata(sub_role="UAN", aliases=["uan01"]),
        "x3000c0s20b0n0": placeholder_metadata(),
    }
