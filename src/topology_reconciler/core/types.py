"""
Core types.

This file defines the shared data structures used across the reconciler.

Important design choice
Hardware payloads are a closed set of typed variants, one per hardware kind that
carries a payload. The inventory boundary decodes the loosely typed SLS payload
once, and everything past that point only sees these dataclasses.

That makes the diff a plain structural comparison of dataclasses, and removes
runtime type checks from the reconciliation logic.

Addresses are ipaddress.IPv4Address and CIDRs are ipaddress.IPv4Network.

Every decoded SLS object keeps the keys it does not model in an extra dict. Encoding
writes them back, so a put never drops fields another tool owns. extra is left out
of equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from ipaddress import IPv4Address, IPv4Network
from typing import Any, Dict, List, Optional, Union


class HardwareClass(str, Enum):
    """
    Cooling and architecture class of a piece of hardware.

    River
      Air cooled, standard 19 inch racks.

    Hill
      Liquid cooled, smaller cabinet variant.

    Mountain
      Liquid cooled, full size cabinets and CDUs.
    """

    river = "River"
    hill = "Hill"
    mountain = "Mountain"


class HardwareKind(str, Enum):
    """
    Hardware kind, derived from the shape of the identifier.

    Values match the SLS TypeString so they can be written back unchanged.
    """

    cabinet = "Cabinet"
    cdu = "CDU"
    cdu_mgmt_switch = "CDUMgmtSwitch"
    cabinet_pdu_controller = "CabinetPDUController"
    chassis = "Chassis"
    chassis_bmc = "ChassisBMC"
    compute_module = "ComputeModule"
    node_bmc = "NodeBMC"
    node = "Node"
    router_module = "RouterModule"
    router_bmc = "RouterBMC"
    mgmt_switch = "MgmtSwitch"
    mgmt_switch_connector = "MgmtSwitchConnector"
    mgmt_hl_switch_enclosure = "MgmtHLSwitchEnclosure"
    mgmt_hl_switch = "MgmtHLSwitch"


# SLS "Type" strings per kind.
COMPTYPES: Dict[HardwareKind, str] = {
    HardwareKind.cabinet: "comptype_cabinet",
    HardwareKind.cdu: "comptype_cdu",
    HardwareKind.cdu_mgmt_switch: "comptype_cdu_mgmt_switch",
    HardwareKind.cabinet_pdu_controller: "comptype_cab_pdu_controller",
    HardwareKind.chassis: "comptype_chassis",
    HardwareKind.chassis_bmc: "comptype_chassis_bmc",
    HardwareKind.compute_module: "comptype_compmod",
    HardwareKind.node_bmc: "comptype_ncard",
    HardwareKind.node: "comptype_node",
    HardwareKind.router_module: "comptype_rtrmod",
    HardwareKind.router_bmc: "comptype_rtr_bmc",
    HardwareKind.mgmt_switch: "comptype_mgmt_switch",
    HardwareKind.mgmt_switch_connector: "comptype_mgmt_switch_connector",
    HardwareKind.mgmt_hl_switch_enclosure: "comptype_hl_switch_enclosure",
    HardwareKind.mgmt_hl_switch: "comptype_hl_switch",
}


class NodeRole(str, Enum):
    """Node roles the reconciler cares about."""

    compute = "Compute"
    application = "Application"
    management = "Management"


# ---------------------------
# HARDWARE PAYLOAD VARIANTS
# ---------------------------


@dataclass
class NodeProperties:
    """
    Node payload.

    nid is only present for compute and management nodes.
    Application nodes carry a sub_role such as UAN and operator supplied aliases.
    """

    role: str
    sub_role: str = ""
    nid: Optional[int] = None
    aliases: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class MgmtSwitchProperties:
    """
    Leaf BMC switch payload.

    ip4_addr is filled in by the reconciler from the HMN reservation, because the
    discovery logic reads it off the hardware record directly.
    """

    brand: str
    model: str
    aliases: List[str] = field(default_factory=list)
    ip4_addr: str = ""
    snmp_auth_password: str = ""
    snmp_auth_protocol: str = ""
    snmp_priv_password: str = ""
    snmp_priv_protocol: str = ""
    snmp_username: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def without_allocations(self) -> "MgmtSwitchProperties":
        """Return a copy without fields that only the allocator knows."""
        return replace(self, ip4_addr="")


@dataclass
class MgmtHLSwitchProperties:
    """Spine, leaf and edge router payload."""

    brand: str
    model: str
    aliases: List[str] = field(default_factory=list)
    ip4_addr: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def without_allocations(self) -> "MgmtHLSwitchProperties":
        """Return a copy without fields that only the allocator knows."""
        return replace(self, ip4_addr="")


@dataclass
class CDUMgmtSwitchProperties:
    """CDU switch payload."""

    brand: str
    model: str
    aliases: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class CabinetNetwork:
    """Per network subnet information stamped on a cabinet record."""

    cidr: str
    gateway: str
    vlan: int


@dataclass
class CabinetProperties:
    """
    Cabinet payload.

    networks maps a node group ("cn" or "ncn") to network family to CabinetNetwork.
    The topology file never knows these values, they come from cabinet subnet allocation.
    """

    model: str = ""
    networks: Dict[str, Dict[str, CabinetNetwork]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def without_allocations(self) -> "CabinetProperties":
        """Return a copy without fields that only the allocator knows."""
        return replace(self, networks={})


@dataclass
class RouterBMCProperties:
    """HSN switch controller payload. Values are credential pointers, not secrets."""

    username: str
    password: str
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class MgmtSwitchConnectorProperties:
    """
    Switch port payload.

    node_nics lists the identifiers of the controllers plugged into this port.
    vendor_name is the port name as the switch vendor spells it.
    """

    node_nics: List[str]
    vendor_name: str
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


HardwareProperties = Union[
    NodeProperties,
    MgmtSwitchProperties,
    MgmtHLSwitchProperties,
    CDUMgmtSwitchProperties,
    CabinetProperties,
    RouterBMCProperties,
    MgmtSwitchConnectorProperties,
]


@dataclass
class HardwareRecord:
    """
    A hardware record in the inventory.

    identifier is the xname and the primary key everywhere.
    parent_identifier and kind are derived from the identifier.
    properties is None for kinds without a payload variant. Their SLS payload, if
    any, is kept as is in untyped_properties.
    """

    identifier: str
    parent_identifier: str
    hardware_class: HardwareClass
    kind: HardwareKind
    properties: Optional[HardwareProperties] = None
    untyped_properties: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def comptype(self) -> str:
        """Return the SLS Type string for this record."""
        return COMPTYPES[self.kind]

    def node_role(self) -> str:
        """Return the node role or an empty string for non node records."""
        if isinstance(self.properties, NodeProperties):
            return self.properties.role
        return ""


# ---------------------------
# NETWORK STATE
# ---------------------------


@dataclass
class IPReservation:
    """
    A single static address reservation inside a subnet.

    owner_id is the identifier of the hardware that caused the reservation.
    SLS stores it in the Comment field.
    """

    address: IPv4Address
    name: str
    owner_id: str = ""
    aliases: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class Subnet:
    """
    One subnet inside a network.

    Addresses below dhcp_start form the static range.
    dhcp_start and dhcp_end are None when the subnet has no DHCP pool.
    """

    name: str
    cidr: IPv4Network
    gateway: IPv4Address
    vlan_id: Optional[int] = None
    dhcp_start: Optional[IPv4Address] = None
    dhcp_end: Optional[IPv4Address] = None
    ip_reservations: List[IPReservation] = field(default_factory=list)
    full_name: str = ""
    metallb_pool_name: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class NetworkDetail:
    """
    Decoded network extra properties.

    Subnet CIDRs never overlap once the allocator has touched them.
    """

    cidr: IPv4Network
    subnets: List[Subnet] = field(default_factory=list)
    mtu: Optional[int] = None
    vlan_range: List[int] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def lookup_subnet(self, name: str) -> tuple[Subnet, int]:
        """
        Return the subnet with the given name and its index.

        Raises KeyError when no subnet has that name.
        """
        for idx, subnet in enumerate(self.subnets):
            if subnet.name == name:
                return subnet, idx
        raise KeyError(name)

    def has_subnet(self, name: str) -> bool:
        return any(subnet.name == name for subnet in self.subnets)


@dataclass
class NetworkRecord:
    """
    One routed network, for example HMN_RVR or CAN.

    detail is decoded once at the inventory boundary.
    """

    name: str
    detail: NetworkDetail
    full_name: str = ""
    ip_ranges: List[str] = field(default_factory=list)
    network_type: str = "ethernet"
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def cidr(self) -> IPv4Network:
        return self.detail.cidr


# ---------------------------
# CHANGE SET
# ---------------------------


@dataclass(frozen=True)
class SubnetAllocation:
    """Audit entry for a subnet carved out of a network."""

    network_name: str
    subnet_name: str
    subnet: Subnet
    causing_identifier: str


@dataclass(frozen=True)
class IPReservationAllocation:
    """Audit entry for an address reserved in a subnet."""

    network_name: str
    subnet_name: str
    reservation: IPReservation
    causing_identifier: str


@dataclass
class TopologyChanges:
    """
    TopologyChanges is the structured output of one reconciliation pass.

    hardware_added is sorted by identifier.
    modified_networks only holds networks whose detail was mutated.
    subnets_added and ip_reservations_added record which hardware caused each allocation.

    The reconciler never applies this, callers push it to the inventory service.
    """

    hardware_added: List[HardwareRecord] = field(default_factory=list)
    modified_networks: Dict[str, NetworkRecord] = field(default_factory=dict)
    subnets_added: List[SubnetAllocation] = field(default_factory=list)
    ip_reservations_added: List[IPReservationAllocation] = field(default_factory=list)
