from __future__ import annotations

import json
from pathlib import Path

import pytest

from topology_reconciler.cli.main import main
from topology_reconciler.cli.runner import ReconcileRunner, RunnerConfig
from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.serialization import inventory_state_to_json
from topology_reconciler.inventory.plugins.static import StaticInventoryPlugin, StaticInventoryWriter
from topology_reconciler.topology.builder import build_expected_state
from topology_reconciler.topology.cabinets import determine_cabinet_lookup
from topology_reconciler.topology.paddle import paddle_from_dict

LEAF = {
    "common_name": "sw-leaf-bmc-001",
    "id": 1,
    "architecture": "river_bmc_leaf",
    "type": "switch",
    "vendor": "aruba",
    "model": "6300M_JL762A",
    "location": {"rack": "x3000", "elevation": "u14"},
    "ports": [],
}

HMN = {
    "Name": "HMN",
    "FullName": "Hardware Management Network",
    "IPRanges": ["10.254.0.0/17"],
    "Type": "ethernet",
    "ExtraProperties": {
        "CIDR": "10.254.0.0/17",
        "Subnets": [{"Name": "network_hardware", "FullName": "", "CIDR": "10.254.0.0/24", "Gateway": "10.254.0.1"}],
    },
}


def _server(node_id: int, name: str, elevation: str, type_: str = "server") -> dict:
    return {
        "common_name": name,
        "id": node_id,
        "architecture": "river_compute_node",
        "type": type_,
        "location": {"rack": "x3000", "elevation": elevation},
        "ports": [{"port": 1, "slot": "bmc", "destination_node_id": 1, "destination_port": node_id}],
    }


def _write_ccj(path: Path, devices: list[dict], architecture: str = "network_v2") -> Path:
    path.write_text(json.dumps({"architecture": architecture, "topology": devices}), encoding="utf-8")
    return path


def _write_dump(path: Path, devices: list[dict], networks: bool = True) -> Path:
    paddle = paddle_from_dict({"architecture": "network_v2", "topology": devices})
    state = build_expected_state(paddle, determine_cabinet_lookup(paddle), {})
    dump = inventory_state_to_json(state)
    dump["Networks"] = {"HMN": HMN} if networks else {}
    path.write_text(json.dumps(dump), encoding="utf-8")
    return path


def _runner(dump: Path, tmp_path: Path, **overrides) -> ReconcileRunner:
    plugin = StaticInventoryPlugin(path=dump)
    config = RunnerConfig(
        sls_file=dump,
        changes_path=tmp_path / "topology_changes.json",
        metadata_output_path=tmp_path / "application_node_metadata.yaml",
        **overrides,
    )
    return ReconcileRunner(plugin, writer=StaticInventoryWriter(plugin), config=config)


def test_dry_run_writes_change_set_only(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    before = dump.read_text(encoding="utf-8")
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF, _server(5, "cn002", "u05", "node")])

    changes = _runner(dump, tmp_path, dry_run=True).run(ccj)

    assert [r.identifier for r in changes.hardware_added] == ["x3000c0s5b0n0", "x3000c0w14j5"]
    assert dump.read_text(encoding="utf-8") == before

    written = json.loads((tmp_path / "topology_changes.json").read_text(encoding="utf-8"))
    assert [h["Xname"] for h in written["HardwareAdded"]] == ["x3000c0s5b0n0", "x3000c0w14j5"]
    assert written["ModifiedNetworks"] == {}


def test_run_pushes_to_writer(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF, _server(5, "cn002", "u05", "node")])

    _runner(dump, tmp_path).run(ccj)

    state = StaticInventoryPlugin(path=dump).load()
    assert state.identifiers() == ["x3000", "x3000c0s5b0n0", "x3000c0w14", "x3000c0w14j5"]

    # a second pass finds nothing to do
    changes = _runner(dump, tmp_path).run(ccj)
    assert changes.hardware_added == []


def test_new_application_node_needs_metadata(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF, _server(19, "uan001", "u19")])

    with pytest.raises(MalformedInput, match="FIXME"):
        _runner(dump, tmp_path).run(ccj)

    seeded = (tmp_path / "application_node_metadata.yaml").read_text(encoding="utf-8")
    assert "x3000c0s19b0n0" in seeded
    assert "~~FIXME~~" in seeded


def test_application_node_metadata_file(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF, _server(19, "uan001", "u19")])
    metadata = tmp_path / "metadata.yaml"
    metadata.write_text("x3000c0s19b0n0:\n  sub_role: Gateway\n  aliases: [gw01]\n", encoding="utf-8")

    changes = _runner(dump, tmp_path, dry_run=True, application_node_metadata_path=metadata).run(ccj)

    node = changes.hardware_added[0]
    assert node.identifier == "x3000c0s19b0n0"
    assert node.properties.aliases == ["gw01"]


def test_unsupported_paddle_architecture(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF], architecture="full")

    with pytest.raises(MalformedInput, match="unsupported"):
        _runner(dump, tmp_path).run(ccj)


def test_inventory_without_networks(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF], networks=False)
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF])

    with pytest.raises(MalformedInput, match="networking information"):
        _runner(dump, tmp_path).run(ccj)


def test_main_exit_codes(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF, _server(5, "cn002", "u05", "node")])
    changes = tmp_path / "out.json"

    ok = _write_ccj(tmp_path / "ok.json", [LEAF, _server(5, "cn002", "u05", "node")])
    assert main(["update", str(ok), "--sls-file", str(dump), "--dry-run", "--changes-file", str(changes)]) == 0
    assert changes.exists()

    # cn002 is gone from the topology file
    removed = _write_ccj(tmp_path / "removed.json", [LEAF])
    assert main(["update", str(removed), "--sls-file", str(dump), "--dry-run", "--changes-file", str(changes)]) == 1


def test_main_diff(tmp_path: Path):
    a = _write_dump(tmp_path / "a.json", [LEAF])
    b = _write_dump(tmp_path / "b.json", [LEAF, _server(5, "cn002", "u05", "node")])
    assert main(["diff", str(a), str(b)]) == 0


def test_main_reports_unreadable_inputs(tmp_path: Path):
    dump = _write_dump(tmp_path / "sls_dump.json", [LEAF])
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF])
    changes = tmp_path / "out.json"

    missing = str(tmp_path / "missing.json")
    assert main(["update", missing, "--sls-file", str(dump), "--changes-file", str(changes)]) == 1
    assert main(["update", str(ccj), "--sls-file", missing, "--changes-file", str(changes)]) == 1
    assert main(["diff", missing, str(dump)]) == 1
    assert not changes.exists()


def test_main_reports_unreachable_inventory_service(tmp_path: Path):
    ccj = _write_ccj(tmp_path / "ccj.json", [LEAF])
    changes = tmp_path / "out.json"

    argv = ["update", str(ccj), "--sls-url", "http://127.0.0.1:1/v1", "--timeout", "2", "--changes-file", str(changes)]
    assert main(argv) == 1
    assert not changes.exists()
