from __future__ import annotations

from ipaddress import IPv4Address, IPv4Network

import pytest

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.inventory.network import (
    decode_network_detail,
    encode_network_detail,
    network_from_sls,
    network_to_sls,
)


def _hmn_rvr() -> dict:
    return {
        "Name": "HMN_RVR",
        "FullName": "River Hardware Management Network",
        "IPRanges": ["10.107.0.0/17"],
        "Type": "ethernet",
        "ExtraProperties": {
            "CIDR": "10.107.0.0/17",
            "MTU": 9000,
            "VlanRange": [1513, 1769],
            "Subnets": [
                {
                    "Name": "cabinet_3000",
                    "FullName": "",
                    "CIDR": "10.107.0.0/22",
                    "VlanID": 1513,
                    "Gateway": "10.107.0.1",
                    "DHCPStart": "10.107.0.10",
                    "DHCPEnd": "10.107.3.254",
                    "IPReservations": [
                        {"Name": "sw-leaf-bmc-001", "IPAddress": "10.107.0.2", "Comment": "x3000c0w14"}
                    ],
                }
            ],
        },
    }


def test_decode_network():
    net = network_from_sls(_hmn_rvr())

    assert net.name == "HMN_RVR"
    assert net.cidr == IPv4Network("10.107.0.0/17")
    assert net.detail.mtu == 9000
    assert net.detail.vlan_range == [1513, 1769]

    subnet, idx = net.detail.lookup_subnet("cabinet_3000")
    assert idx == 0
    assert subnet.gateway == IPv4Address("10.107.0.1")
    assert subnet.dhcp_start == IPv4Address("10.107.0.10")
    assert subnet.vlan_id == 1513
    assert subnet.ip_reservations[0].owner_id == "x3000c0w14"


def test_lookup_missing_subnet():
    net = network_from_sls(_hmn_rvr())
    with pytest.raises(KeyError):
        net.detail.lookup_subnet("network_hardware")
    assert not net.detail.has_subnet("network_hardware")


def test_encode_keeps_wire_shape():
    raw = _hmn_rvr()
    assert network_to_sls(network_from_sls(raw)) == raw


def test_encode_keeps_unmodelled_keys():
    raw = _hmn_rvr()
    raw["LastUpdatedTime"] = "2023-01-01 00:00:00"
    raw["ExtraProperties"]["SystemDefaultRoute"] = "CMN"
    raw["ExtraProperties"]["MyASN"] = 65532
    raw["ExtraProperties"]["PeerASN"] = 65533
    raw["ExtraProperties"]["Comment"] = "river"
    subnet = raw["ExtraProperties"]["Subnets"][0]
    subnet["ReservationStart"] = "10.107.0.2"
    subnet["ReservationEnd"] = "10.107.0.9"
    subnet["Comment"] = "x3000"
    subnet["IPReservations"][0]["Owner"] = "csm"

    net = network_from_sls(raw)
    assert net.detail.extra == {"SystemDefaultRoute": "CMN", "MyASN": 65532, "PeerASN": 65533, "Comment": "river"}
    assert network_to_sls(net) == raw

    net.detail.subnets[0].dhcp_start = IPv4Address("10.107.0.12")
    out = network_to_sls(net)["ExtraProperties"]["Subnets"][0]
    assert out["DHCPStart"] == "10.107.0.12"
    assert out["ReservationStart"] == "10.107.0.2"


def test_subnet_without_dhcp_range():
    detail = decode_network_detail(
        {
            "CIDR": "10.254.0.0/17",
            "Subnets": [{"Name": "network_hardware", "CIDR": "10.254.0.0/24", "Gateway": "10.254.0.1"}],
        },
        "HMN",
    )
    subnet = detail.subnets[0]
    assert subnet.dhcp_start is None
    assert subnet.dhcp_end is None
    assert encode_network_detail(detail)["Subnets"][0] == {
        "Name": "network_hardware",
        "FullName": "",
        "CIDR": "10.254.0.0/24",
        "Gateway": "10.254.0.1",
    }


@pytest.mark.parametrize(
    "raw",
    [
        {"Subnets": []},
        {"CIDR": "10.254.0.0/33"},
        {"CIDR": "10.254.0.0/17", "Subnets": [{"Name": "a", "CIDR": "10.254.0.0/24", "Gateway": "gw"}]},
        {"CIDR": "10.254.0.0/17", "Subnets": [{"Name": "a", "CIDR": "nope", "Gateway": "10.254.0.1"}]},
    ],
)
def test_malformed_network_detail(raw):
    with pytest.raises(MalformedInput, match="HMN"):
        decode_network_detail(raw, "HMN")
