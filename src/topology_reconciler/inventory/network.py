"""
Network state accessor.

SLS stores network detail as a free form ExtraProperties payload. This module
decodes it into NetworkDetail once at the inventory boundary, and encodes it back
when a modified network is pushed.

Schema example
{
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
        "IPReservations": [{"Name": "sw-leaf-bmc-001", "IPAddress": "10.107.0.2", "Comment": "x3000c0w14"}]
      }
    ]
  }
}

Keys outside the ones read here, for example SystemDefaultRoute, MyASN or a subnet
ReservationStart, are kept in the extra dict of each object and written back
unchanged.

Decoding failures raise MalformedInput naming the network and subnet.
"""

from __future__ import annotations

from ipaddress import AddressValueError, IPv4Address, IPv4Network, NetmaskValueError
from typing import Any, Optional

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import IPReservation, NetworkDetail, NetworkRecord, Subnet

_NETWORK_KEYS = frozenset({"Name", "FullName", "IPRanges", "Type", "ExtraProperties"})
_DETAIL_KEYS = frozenset({"CIDR", "MTU", "VlanRange", "Subnets"})
_SUBNET_KEYS = frozenset(
    {"Name", "FullName", "CIDR", "Gateway", "VlanID", "DHCPStart", "DHCPEnd", "MetalLBPoolName", "IPReservations"}
)
_RESERVATION_KEYS = frozenset({"Name", "IPAddress", "Comment", "Aliases"})


def _unmodelled(obj: dict[str, Any], keys: frozenset[str]) -> dict[str, Any]:
    return {k: v for k, v in obj.items() if k not in keys}


def _parse_network(value: Any, where: str) -> IPv4Network:
    if not isinstance(value, str) or not value:
        raise MalformedInput(f"{where}: missing CIDR")
    try:
        return IPv4Network(value, strict=False)
    except (AddressValueError, NetmaskValueError, ValueError) as err:
        raise MalformedInput(f"{where}: invalid CIDR ({value})") from err


def _parse_address(value: Any, where: str) -> IPv4Address:
    if not isinstance(value, str) or not value:
        raise MalformedInput(f"{where}: missing IP address")
    try:
        return IPv4Address(value)
    except (AddressValueError, ValueError) as err:
        raise MalformedInput(f"{where}: invalid IP address ({value})") from err


def _parse_optional_address(value: Any, where: str) -> Optional[IPv4Address]:
    if value is None or value == "":
        return None
    return _parse_address(value, where)


def _parse_optional_int(value: Any, where: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as err:
        raise MalformedInput(f"{where}: invalid integer ({value})") from err


def _reservation_from_dict(obj: Any, where: str) -> IPReservation:
    if not isinstance(obj, dict):
        raise MalformedInput(f"{where}: IP reservation must be an object")

    name = str(obj.get("Name", ""))
    return IPReservation(
        address=_parse_address(obj.get("IPAddress"), f"{where} reservation {name}"),
        name=name,
        owner_id=str(obj.get("Comment", "") or ""),
        aliases=[str(a) for a in (obj.get("Aliases") or [])],
        extra=_unmodelled(obj, _RESERVATION_KEYS),
    )


def _subnet_from_dict(obj: Any, network_name: str) -> Subnet:
    if not isinstance(obj, dict):
        raise MalformedInput(f"network {network_name}: subnet must be an object")

    name = str(obj.get("Name", ""))
    where = f"network {network_name} subnet {name}"

    subnet = Subnet(
        name=name,
        cidr=_parse_network(obj.get("CIDR"), where),
        gateway=_parse_address(obj.get("Gateway"), f"{where} gateway"),
        vlan_id=_parse_optional_int(obj.get("VlanID"), f"{where} VlanID"),
        dhcp_start=_parse_optional_address(obj.get("DHCPStart"), f"{where} DHCPStart"),
        dhcp_end=_parse_optional_address(obj.get("DHCPEnd"), f"{where} DHCPEnd"),
        full_name=str(obj.get("FullName", "") or ""),
        metallb_pool_name=str(obj.get("MetalLBPoolName", "") or ""),
        extra=_unmodelled(obj, _SUBNET_KEYS),
    )

    for raw in obj.get("IPReservations") or []:
        subnet.ip_reservations.append(_reservation_from_dict(raw, where))

    return subnet


def decode_network_detail(raw: Any, network_name: str) -> NetworkDetail:
    """Decode a network ExtraProperties payload into NetworkDetail."""
    if not isinstance(raw, dict):
        raise MalformedInput(f"network {network_name}: ExtraProperties must be an object")

    detail = NetworkDetail(
        cidr=_parse_network(raw.get("CIDR"), f"network {network_name}"),
        mtu=_parse_optional_int(raw.get("MTU"), f"network {network_name} MTU"),
        extra=_unmodelled(raw, _DETAIL_KEYS),
    )

    for value in raw.get("VlanRange") or []:
        vlan = _parse_optional_int(value, f"network {network_name} VlanRange")
        if vlan is not None:
            detail.vlan_range.append(vlan)

    for obj in raw.get("Subnets") or []:
        detail.subnets.append(_subnet_from_dict(obj, network_name))

    return detail


def _reservation_to_dict(reservation: IPReservation) -> dict[str, Any]:
    out = dict(reservation.extra)
    out["Name"] = reservation.name
    out["IPAddress"] = str(reservation.address)
    if reservation.owner_id:
        out["Comment"] = reservation.owner_id
    if reservation.aliases:
        out["Aliases"] = list(reservation.aliases)
    return out


def _subnet_to_dict(subnet: Subnet) -> dict[str, Any]:
    out = dict(subnet.extra)
    out.update(
        {
            "Name": subnet.name,
            "FullName": subnet.full_name,
            "CIDR": str(subnet.cidr),
            "Gateway": str(subnet.gateway),
        }
    )
    if subnet.vlan_id is not None:
        out["VlanID"] = subnet.vlan_id
    if subnet.dhcp_start is not None:
        out["DHCPStart"] = str(subnet.dhcp_start)
    if subnet.dhcp_end is not None:
        out["DHCPEnd"] = str(subnet.dhcp_end)
    if subnet.metallb_pool_name:
        out["MetalLBPoolName"] = subnet.metallb_pool_name
    if subnet.ip_reservations:
        out["IPReservations"] = [_reservation_to_dict(r) for r in subnet.ip_reservations]
    return out


def encode_network_detail(detail: NetworkDetail) -> dict[str, Any]:
    """Encode NetworkDetail back into the ExtraProperties payload shape."""
    out = dict(detail.extra)
    out["CIDR"] = str(detail.cidr)
    if detail.mtu is not None:
        out["MTU"] = detail.mtu
    if detail.vlan_range:
        out["VlanRange"] = list(detail.vlan_range)
    out["Subnets"] = [_subnet_to_dict(s) for s in detail.subnets]
    return out


def network_from_sls(obj: dict[str, Any]) -> NetworkRecord:
    """Convert an SLS network object into a NetworkRecord."""
    name = obj.get("Name")
    if not isinstance(name, str) or not name:
        raise MalformedInput("network object missing Name")

    return NetworkRecord(
        name=name,
        detail=decode_network_detail(obj.get("ExtraProperties"), name),
        full_name=str(obj.get("FullName", "") or ""),
        ip_ranges=[str(r) for r in (obj.get("IPRanges") or [])],
        network_type=str(obj.get("Type", "ethernet") or "ethernet"),
        extra=_unmodelled(obj, _NETWORK_KEYS),
    )


def network_to_sls(network: NetworkRecord) -> dict[str, Any]:
    """Convert a NetworkRecord into an SLS network object."""
    out = dict(network.extra)
    out.update(
        {
            "Name": network.name,
            "FullName": network.full_name,
            "IPRanges": list(network.ip_ranges),
            "Type": network.network_type,
            "ExtraProperties": encode_network_detail(network.detail),
        }
    )
    return out
