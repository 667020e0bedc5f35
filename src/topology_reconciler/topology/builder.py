"""
Hardware builder.

Purpose
Turns the topology file into the expected inventory: one HardwareRecord per
device the inventory service tracks, the switch port records that tie each
controller to its leaf BMC switch, and one record per cabinet.

Identifier derivation
The topology file knows racks and rack units, not identifiers. We derive them:
cabinet ordinal from the rack (x3000 gives 3000)
slot or switch ordinal from the rack unit (u14 gives 14)
chassis is always 0 for air cooled hardware

Nodes need more care:
single node chassis use BMC 0
dual node chassis use BMC 1 (left) or 2 (right)
dense quad node chassis take the slot of their chassis controller (CMC) and a BMC
ordinal derived from the NID, ((nid - 1) % 4) + 1

Only compute nodes can be placed in a dense quad node chassis, the NID is the only
thing that tells the four nodes apart.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from topology_reconciler.core.errors import MalformedInput, UnknownArchitecture
from topology_reconciler.core.types import (
    CabinetProperties,
    CDUMgmtSwitchProperties,
    HardwareClass,
    HardwareKind,
    HardwareRecord,
    MgmtHLSwitchProperties,
    MgmtSwitchConnectorProperties,
    MgmtSwitchProperties,
    NodeProperties,
    NodeRole,
    RouterBMCProperties,
)
from topology_reconciler.core.xname import cabinet_of, is_controller
from topology_reconciler.inventory.hardware import new_hardware
from topology_reconciler.inventory.store import InventoryState
from topology_reconciler.topology.cabinets import CabinetLookup
from topology_reconciler.topology.metadata import (
    ApplicationNodeMetadataMap,
    placeholder_metadata,
)
from topology_reconciler.topology.paddle import Paddle, TopologyNode, extract_number

logger = logging.getLogger(__name__)

# Topology file vendor -> inventory brand
VENDOR_BRANDS: Dict[str, str] = {
    "aruba": "Aruba",
    "dell": "Dell",
    "mellanox": "Mellanox",
}

# Devices the inventory service has no record type for.
IGNORED_ARCHITECTURES = frozenset({"kvm", "cec"})

HL_SWITCH_ARCHITECTURES = frozenset({"customer_edge_router", "spine", "river_ncn_leaf"})

NODE_TYPES = frozenset({"node", "server"})

# Gigabyte chassis controllers take this BMC ordinal.
CMC_BMC_ORDINAL = 999

SwitchAliasOverrides = Dict[str, List[str]]


def _number(raw: str, what: str) -> int:
    try:
        return extract_number(raw)
    except ValueError as err:
        raise MalformedInput(f"unable to extract {what} ordinal due to: {err}") from err


def _rack_and_unit(node: TopologyNode) -> tuple[int, int]:
    return _number(node.location.rack, "cabinet"), _number(node.location.elevation, "rack U")


def _vault_ref(identifier: str) -> str:
    return f"vault://hms-creds/{identifier}"


def _aliases(node: TopologyNode, identifier: str, overrides: SwitchAliasOverrides) -> List[str]:
    if identifier in overrides:
        return list(overrides[identifier])
    return [node.common_name]


def build_node_properties(node: TopologyNode) -> NodeProperties:
    """
    Derive node payload from the common name.

    ncn-m, ncn-w, ncn-s are management nodes.
    cnNNN are compute nodes, the NID is the number in the name.
    Anything else is an application node. Its sub role and aliases come from
    operator metadata, see build_node.
    """
    if node.type not in NODE_TYPES:
        raise MalformedInput(f"unexpected topology node type ({node.type}) expected (server or node)")

    name = node.common_name
    if name.startswith("ncn-m"):
        return NodeProperties(role=NodeRole.management, sub_role="Master", aliases=[name])
    if name.startswith("ncn-w"):
        return NodeProperties(role=NodeRole.management, sub_role="Worker", aliases=[name])
    if name.startswith("ncn-s"):
        return NodeProperties(role=NodeRole.management, sub_role="Storage", aliases=[name])
    if name.startswith("cn"):
        try:
            nid = extract_number(name)
        except ValueError as err:
            raise MalformedInput(f"unable to extract NID from common name ({name}) due to: {err}") from err
        return NodeProperties(role=NodeRole.compute, nid=nid, aliases=[f"nid{nid:06d}"])

    return NodeProperties(role=NodeRole.application)


def dense_chassis_bmc_ordinal(nid: Optional[int]) -> int:
    """Return the BMC ordinal of a node in a dense quad node chassis."""
    if not nid:
        raise MalformedInput("found compute node with a NID of 0")
    return ((nid - 1) % 4) + 1


def build_node_identifier(node: TopologyNode, paddle: Paddle, properties: NodeProperties) -> str:
    if node.type not in NODE_TYPES:
        raise MalformedInput(f"unexpected topology node type ({node.type}) expected (server or node)")

    cabinet, slot = _rack_and_unit(node)
    bmc = 0

    if node.location.parent:
        # The parent field does not match the CMC common name, follow the cmc port instead.
        cmc_ports = node.find_ports("cmc")
        if len(cmc_ports) != 1:
            raise MalformedInput(f"unexpected number of 'cmc' ports found ({len(cmc_ports)}) expected 1")

        cmc = paddle.find_node_by_id(cmc_ports[0].destination_node_id)
        if cmc is None:
            raise MalformedInput(
                f"unable to find parent topology node with id ({cmc_ports[0].destination_node_id})"
            )
        if cmc.location.rack != node.location.rack:
            raise MalformedInput(
                f"parent topology has inconsistent rack location ({cmc.location.rack}) "
                f"expected {node.location.rack}"
            )

        slot = _number(cmc.location.elevation, "rack U")

        if properties.role != NodeRole.compute:
            raise MalformedInput(
                f"calculating BMC ordinal for a dense quad node chassis for a non compute node "
                f"({properties.role}) which is currently not supported"
            )
        bmc = dense_chassis_bmc_ordinal(properties.nid)
    elif node.location.sub_location.lower() == "l":
        bmc = 1
    elif node.location.sub_location.lower() == "r":
        bmc = 2

    return f"x{cabinet}c0s{slot}b{bmc}n0"


def build_node(
    node: TopologyNode,
    paddle: Paddle,
    app_metadata: ApplicationNodeMetadataMap,
) -> HardwareRecord:
    properties = build_node_properties(node)
    identifier = build_node_identifier(node, paddle, properties)

    if properties.role == NodeRole.application:
        metadata = app_metadata.get(identifier)
        if metadata is None:
            raise MalformedInput(
                f"unable to find node xname ({identifier}) in the application node metadata map"
            )
        if not metadata.aliases:
            raise MalformedInput(f"application node ({identifier}) has no defined aliases")
        properties.sub_role = metadata.sub_role
        properties.aliases = list(metadata.aliases)

    return new_hardware(identifier, HardwareClass.river, properties)


def _build_chassis_bmc(node: TopologyNode, cabinets: CabinetLookup) -> HardwareRecord:
    cabinet = _number(node.location.rack, "cabinet")
    chassis = _number(node.location.elevation, "chassis")
    hardware_class = cabinets.class_of(f"x{cabinet}")
    return new_hardware(f"x{cabinet}c{chassis}b0", hardware_class)


def _build_cmc(node: TopologyNode) -> HardwareRecord:
    cabinet, slot = _rack_and_unit(node)
    return new_hardware(f"x{cabinet}c0s{slot}b{CMC_BMC_ORDINAL}", HardwareClass.river)


def _build_pdu_controller(node: TopologyNode) -> HardwareRecord:
    cabinet = _number(node.location.rack, "cabinet")
    pdu = _number(node.location.elevation, "pdu")
    return new_hardware(f"x{cabinet}m{pdu}", HardwareClass.river)


def _build_hsn_switch(node: TopologyNode) -> HardwareRecord:
    cabinet, slot = _rack_and_unit(node)
    identifier = f"x{cabinet}c0r{slot}b0"
    return new_hardware(
        identifier,
        HardwareClass.river,
        RouterBMCProperties(username=_vault_ref(identifier), password=_vault_ref(identifier)),
    )


def _build_mgmt_switch(node: TopologyNode, overrides: SwitchAliasOverrides) -> HardwareRecord:
    cabinet, slot = _rack_and_unit(node)
    identifier = f"x{cabinet}c0w{slot}"

    brand = VENDOR_BRANDS.get(node.vendor)
    if brand is None:
        raise MalformedInput(f"unknown topology node vendor: ({node.vendor})")

    return new_hardware(
        identifier,
        HardwareClass.river,
        MgmtSwitchProperties(
            brand=brand,
            model=node.model,
            aliases=_aliases(node, identifier, overrides),
            snmp_auth_password=_vault_ref(identifier),
            snmp_auth_protocol="MD5",
            snmp_priv_password=_vault_ref(identifier),
            snmp_priv_protocol="DES",
            snmp_username="testuser",
        ),
    )


def _build_mgmt_hl_switch(node: TopologyNode, overrides: SwitchAliasOverrides) -> HardwareRecord:
    cabinet, slot = _rack_and_unit(node)

    # A switch that fills the whole rack unit is space 1.
    space = 2 if node.location.sub_location.lower() == "r" else 1
    identifier = f"x{cabinet}c0h{slot}s{space}"

    brand = VENDOR_BRANDS.get(node.vendor)
    model = node.model
    if brand is None:
        if node.architecture != "customer_edge_router":
            raise MalformedInput(f"unknown topology node vendor: ({node.vendor})")
        # Edge routers are not described in the topology file, only Arista is supported.
        brand = "Arista"
        model = ""

    return new_hardware(
        identifier,
        HardwareClass.river,
        MgmtHLSwitchProperties(brand=brand, model=model, aliases=_aliases(node, identifier, overrides)),
    )


def _build_cdu_mgmt_switch(node: TopologyNode, overrides: SwitchAliasOverrides) -> HardwareRecord:
    cdu = _number(node.location.rack, "cdu")
    slot = _number(node.location.elevation, "rack U")
    identifier = f"d{cdu}w{slot}"

    brand = VENDOR_BRANDS.get(node.vendor)
    if brand is None:
        raise MalformedInput(f"unknown topology node vendor: ({node.vendor})")

    return new_hardware(
        identifier,
        HardwareClass.mountain,
        CDUMgmtSwitchProperties(brand=brand, model=node.model, aliases=_aliases(node, identifier, overrides)),
    )


def build_hardware(
    node: TopologyNode,
    paddle: Paddle,
    cabinets: CabinetLookup,
    app_metadata: ApplicationNodeMetadataMap,
    switch_alias_overrides: Optional[SwitchAliasOverrides] = None,
) -> Optional[HardwareRecord]:
    """
    Build the hardware record for one topology device.

    Returns None for devices the inventory does not track.
    Raises UnknownArchitecture for devices the builder cannot classify.
    """
    overrides = switch_alias_overrides or {}
    arch = node.architecture

    if arch in IGNORED_ARCHITECTURES:
        return None
    if arch == "cmm":
        return _build_chassis_bmc(node, cabinets)
    if arch == "subrack":
        return _build_cmc(node)
    if arch == "pdu":
        return _build_pdu_controller(node)
    if arch == "slingshot_hsn_switch":
        return _build_hsn_switch(node)
    if arch == "mountain_compute_leaf":
        # Newer Hill systems put this switch in a regular cabinet.
        if node.location.rack.startswith("x"):
            return _build_mgmt_hl_switch(node, overrides)
        return _build_cdu_mgmt_switch(node, overrides)
    if arch in HL_SWITCH_ARCHITECTURES:
        return _build_mgmt_hl_switch(node, overrides)
    if arch == "river_bmc_leaf":
        return _build_mgmt_switch(node, overrides)
    if node.type in NODE_TYPES:
        return build_node(node, paddle, app_metadata)

    raise UnknownArchitecture(
        f"unknown architecture type {arch} for CANU common name {node.common_name}"
    )


_SWITCH_KINDS = {HardwareKind.mgmt_hl_switch, HardwareKind.mgmt_switch, HardwareKind.cdu_mgmt_switch}


def build_mgmt_switch_connector(
    record: HardwareRecord,
    node: TopologyNode,
    paddle: Paddle,
) -> Optional[HardwareRecord]:
    """
    Build the leaf BMC switch port record for a piece of River hardware.

    Controllers are plugged in themselves, for everything else the port points at
    the parent controller. Hardware without a management port cable gets no record.
    """
    if record.kind in _SWITCH_KINDS or record.hardware_class != HardwareClass.river:
        return None

    destination = record.identifier if is_controller(record.kind) else record.parent_identifier

    slot = "mgmt" if node.architecture == "slingshot_hsn_switch" else "bmc"
    ports = node.find_ports(slot)
    if not ports:
        logger.info("%s (%s) does not have a connection to the HMN", record.identifier, node.common_name)
        return None
    if len(ports) != 1:
        raise MalformedInput(f"unexpected number of '{slot}' ports found ({len(ports)}) expected 1")
    port = ports[0]

    switch = paddle.find_node_by_id(port.destination_node_id)
    if switch is None:
        raise MalformedInput(
            f"unable to find destination topology node referenced by port with id ({port.destination_node_id})"
        )

    cabinet, slot_number = _rack_and_unit(switch)
    identifier = f"x{cabinet}c0w{slot_number}j{port.destination_port}"

    if switch.vendor == "dell":
        vendor_name = f"ethernet1/1/{port.destination_port}"
    elif switch.vendor == "aruba":
        vendor_name = f"1/1/{port.destination_port}"
    else:
        raise MalformedInput(f"unexpected switch vendor ({switch.vendor})")

    return new_hardware(
        identifier,
        HardwareClass.river,
        MgmtSwitchConnectorProperties(node_nics=[destination], vendor_name=vendor_name),
    )


def build_expected_state(
    paddle: Paddle,
    cabinets: CabinetLookup,
    app_metadata: ApplicationNodeMetadataMap,
    switch_alias_overrides: Optional[SwitchAliasOverrides] = None,
    ignore_unknown_architectures: bool = False,
) -> InventoryState:
    """
    Build the expected inventory from the topology file.

    Steps
    1) build a record for every device, skipping untracked ones
    2) check the cabinet of every cabinet located record is known
    3) add the chassis behind every chassis controller
    4) add the switch port record for every cabled River device
    5) add one record per known cabinet

    Any duplicate identifier is MalformedInput. The expected state carries no networks.
    """
    state = InventoryState()

    for node in paddle.topology:
        try:
            record = build_hardware(node, paddle, cabinets, app_metadata, switch_alias_overrides)
        except UnknownArchitecture as err:
            if not ignore_unknown_architectures:
                raise
            logger.warning("%s", err)
            continue

        if record is None:
            continue

        if record.identifier.startswith("x"):
            cabinet = cabinet_of(record.identifier)
            if not cabinets.exists(cabinet):
                raise MalformedInput(f"unknown cabinet ({cabinet})")

        state.add_hardware(record)

        if record.kind == HardwareKind.chassis_bmc and state.get(record.parent_identifier) is None:
            state.add_hardware(new_hardware(record.parent_identifier, record.hardware_class))

        connector = build_mgmt_switch_connector(record, node, paddle)
        if connector is not None:
            state.add_hardware(connector)

    for kind, cabinet in cabinets.all_cabinets():
        properties = CabinetProperties(model=kind.value if kind.is_model() else "")
        state.add_hardware(new_hardware(cabinet, kind.hardware_class(), properties))

    return state


def build_application_node_metadata(
    paddle: Paddle,
    existing: ApplicationNodeMetadataMap,
) -> ApplicationNodeMetadataMap:
    """
    Build metadata for every application node in the topology file.

    Nodes already known keep their metadata, new ones get placeholders the
    operator has to fill in.
    """
    out: ApplicationNodeMetadataMap = {}
    for node in paddle.topology:
        if node.type not in NODE_TYPES:
            continue

        properties = build_node_properties(node)
        if properties.role != NodeRole.application:
            continue

        identifier = build_node_identifier(node, paddle, properties)
        if identifier in existing:
            out[identifier] = existing[identifier]
        else:
            out[identifier] = placeholder_metadata()

    return out
