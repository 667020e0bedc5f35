"""
Topology reconciliation engine.

Purpose
Compare the recorded inventory with the inventory the topology file implies, and
produce the change set that grows the recorded inventory to match it.

One pass
1) build the expected state from the topology file, unless one was given
2) scope filter, keep River hardware and drop management nodes on both sides
3) diff, removed, added, identical and differing hardware
4) guard rail, any removed or differing hardware refuses the whole pass
5) resource expansion for added hardware, in identifier order
   cabinets get a subnet in each cabinet network family
   management switches get an address in each fabric network
   user access nodes get an address in each external access network
6) assemble the change set

Safety
The pass works on deep copies of the current networks and of the added records.
Nothing the caller passed in is mutated, and any error means no change set at all.
The engine never pushes anything, callers decide what to do with the change set.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from topology_reconciler.core.errors import GuardRailViolation, MalformedInput
from topology_reconciler.core.types import (
    CabinetNetwork,
    CabinetProperties,
    CDUMgmtSwitchProperties,
    HardwareClass,
    HardwareKind,
    HardwareProperties,
    HardwareRecord,
    IPReservationAllocation,
    MgmtHLSwitchProperties,
    MgmtSwitchProperties,
    NetworkRecord,
    NodeProperties,
    NodeRole,
    Subnet,
    SubnetAllocation,
    TopologyChanges,
)
from topology_reconciler.engine.report import log_comparison_report
from topology_reconciler.inventory.diff import HardwarePair, subtract, union
from topology_reconciler.inventory.store import InventoryState
from topology_reconciler.ipam.allocator import (
    DEFAULT_CABINET_PREFIX,
    allocate_cabinet_subnet,
    allocate_ip,
    expand_subnet_static_range,
    free_ips_in_static_range,
)
from topology_reconciler.topology.builder import SwitchAliasOverrides, build_expected_state
from topology_reconciler.topology.cabinets import CabinetLookup, determine_cabinet_lookup
from topology_reconciler.topology.metadata import ApplicationNodeMetadataMap, CabinetVlans
from topology_reconciler.topology.paddle import Paddle

logger = logging.getLogger(__name__)

SWITCH_KINDS = frozenset(
    {HardwareKind.cdu_mgmt_switch, HardwareKind.mgmt_hl_switch, HardwareKind.mgmt_switch}
)


@dataclass(frozen=True)
class NetworkNames:
    """
    Network naming policy.

    fabric
    Networks every new management switch gets an address in.

    hardware_subnet
    Subnet of each fabric network that holds switch addresses.

    cabinet_families
    Network families that get a subnet per new cabinet. The network used is the
    family name with a class suffix, HMN_RVR for River cabinets, HMN_MTN otherwise.

    external
    External access networks for user access nodes. At least one must exist
    when user access nodes are added.

    leaf_switch_network
    The leaf BMC switch keeps its address in this network on its own record.
    """

    fabric: tuple[str, ...] = ("HMN", "NMN", "MTL", "CMN")
    hardware_subnet: str = "network_hardware"
    cabinet_families: tuple[str, ...] = ("HMN", "NMN")
    external: tuple[str, ...] = ("CAN", "CHN")
    uan_subnet: str = "bootstrap_dhcp"
    uan_sub_role: str = "UAN"
    leaf_switch_network: str = "HMN"

    def cabinet_network(self, family: str, hardware_class: HardwareClass) -> str:
        suffix = "RVR" if hardware_class == HardwareClass.river else "MTN"
        return f"{family}_{suffix}"


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine configuration.

    subnet_prefix_length
    Size of the subnet carved out for each new cabinet.

    cabinet_network_group
    Key under which cabinet records carry their subnet details.
    """

    subnet_prefix_length: int = DEFAULT_CABINET_PREFIX
    cabinet_network_group: str = "cn"
    names: NetworkNames = field(default_factory=NetworkNames)


@dataclass
class EngineInput:
    """
    Inputs of one reconciliation pass.

    Either expected_state is given, or paddle is, and the expected state is built
    from it. cabinet_lookup defaults to the one inferred from the paddle.

    cabinet_vlans maps a cabinet identifier to network family to VLAN.
    """

    current_state: InventoryState
    expected_state: Optional[InventoryState] = None
    paddle: Optional[Paddle] = None
    cabinet_lookup: Optional[CabinetLookup] = None
    application_node_metadata: ApplicationNodeMetadataMap = field(default_factory=dict)
    switch_alias_overrides: SwitchAliasOverrides = field(default_factory=dict)
    cabinet_vlans: CabinetVlans = field(default_factory=dict)
    ignore_unknown_architectures: bool = False

    def __post_init__(self) -> None:
        if self.expected_state is None and self.paddle is None:
            raise ValueError("either expected_state or paddle must be provided")


def _without_allocations(properties: Optional[HardwareProperties]) -> Optional[HardwareProperties]:
    if isinstance(properties, (CabinetProperties, MgmtSwitchProperties, MgmtHLSwitchProperties)):
        return properties.without_allocations()
    return properties


def equal_ignoring_allocations(
    a: Optional[HardwareProperties],
    b: Optional[HardwareProperties],
) -> bool:
    """Compare payloads, ignoring fields the topology file can never know."""
    return _without_allocations(a) == _without_allocations(b)


def in_scope(record: HardwareRecord) -> bool:
    """River hardware that is not a management node."""
    return record.hardware_class == HardwareClass.river and record.node_role() != NodeRole.management


class TopologyEngine:
    """Run one reconciliation pass over an in memory snapshot."""

    def __init__(self, engine_input: EngineInput, config: EngineConfig | None = None) -> None:
        self._input = engine_input
        self._config = config or EngineConfig()

    def expected_state(self) -> InventoryState:
        if self._input.expected_state is not None:
            return self._input.expected_state

        paddle = self._input.paddle
        if paddle is None:
            raise ValueError("either expected_state or paddle must be provided")
        cabinets = self._input.cabinet_lookup or determine_cabinet_lookup(paddle)
        return build_expected_state(
            paddle,
            cabinets,
            self._input.application_node_metadata,
            switch_alias_overrides=self._input.switch_alias_overrides,
            ignore_unknown_architectures=self._input.ignore_unknown_architectures,
        )

    def determine_changes(self) -> TopologyChanges:
        current = self._input.current_state.filtered(in_scope)
        expected = self.expected_state().filtered(in_scope)

        removed = subtract(current, expected)
        added = subtract(expected, current)
        identical, differing = union(current, expected, properties_equal=equal_ignoring_allocations)

        log_comparison_report(removed, added, identical, differing)
        self._guard(removed, differing)

        networks = copy.deepcopy(self._input.current_state.networks)
        added = copy.deepcopy(added)

        changes = TopologyChanges()
        touched: Set[str] = set()

        for record in added:
            if record.kind == HardwareKind.cabinet:
                self._allocate_cabinet_subnets(record, networks, changes, touched)

        for record in added:
            if record.kind in SWITCH_KINDS:
                self._allocate_switch_ips(record, networks, changes, touched)

        self._allocate_uan_ips([r for r in added if self._is_uan(r)], networks, changes, touched)

        changes.hardware_added = added
        changes.modified_networks = {name: networks[name] for name in sorted(touched)}

        logger.info(
            "Change set: %d hardware added, %d networks modified, %d subnets and %d ip reservations allocated",
            len(changes.hardware_added),
            len(changes.modified_networks),
            len(changes.subnets_added),
            len(changes.ip_reservations_added),
        )
        return changes

    def _guard(self, removed: List[HardwareRecord], differing: List[HardwarePair]) -> None:
        if removed:
            raise GuardRailViolation(
                "refusing to continue, found hardware was removed from the system. "
                "Please reconcile the current system state with the systems CCJ/SHCD",
                [r.identifier for r in removed],
            )
        if differing:
            raise GuardRailViolation(
                "refusing to continue, found hardware with differing values "
                "(Class and/or ExtraProperties). Please reconcile the differences",
                [p.identifier for p in differing],
            )

    def _allocate_cabinet_subnets(
        self,
        cabinet: HardwareRecord,
        networks: Dict[str, NetworkRecord],
        changes: TopologyChanges,
        touched: Set[str],
    ) -> None:
        names = self._config.names
        vlans = self._input.cabinet_vlans.get(cabinet.identifier, {})

        if not isinstance(cabinet.properties, CabinetProperties):
            cabinet.properties = CabinetProperties()
        properties = cabinet.properties

        for family in names.cabinet_families:
            network_name = names.cabinet_network(family, cabinet.hardware_class)
            network = networks.get(network_name)
            if network is None:
                raise MalformedInput(
                    f"network {network_name} needed by cabinet {cabinet.identifier} does not exist"
                )

            subnet = allocate_cabinet_subnet(
                network.detail,
                cabinet.identifier,
                vlans.get(family),
                prefix_length=self._config.subnet_prefix_length,
            )
            network.detail.subnets.append(subnet)
            touched.add(network_name)

            logger.info(
                "Allocated cabinet subnet %s %s in network %s for %s",
                subnet.name,
                subnet.cidr,
                network_name,
                cabinet.identifier,
            )
            changes.subnets_added.append(
                SubnetAllocation(
                    network_name=network_name,
                    subnet_name=subnet.name,
                    subnet=subnet,
                    causing_identifier=cabinet.identifier,
                )
            )

            group = properties.networks.setdefault(self._config.cabinet_network_group, {})
            group[family] = CabinetNetwork(
                cidr=str(subnet.cidr),
                gateway=str(subnet.gateway),
                vlan=vlans[family],
            )

    def _hardware_subnet(self, network: NetworkRecord) -> Subnet:
        try:
            subnet, _ = network.detail.lookup_subnet(self._config.names.hardware_subnet)
        except KeyError as err:
            raise MalformedInput(
                f"network {network.name} has no {self._config.names.hardware_subnet} subnet"
            ) from err
        return subnet

    def _allocate_switch_ips(
        self,
        switch: HardwareRecord,
        networks: Dict[str, NetworkRecord],
        changes: TopologyChanges,
        touched: Set[str],
    ) -> None:
        names = self._config.names
        properties = switch.properties
        if not isinstance(
            properties, (MgmtSwitchProperties, MgmtHLSwitchProperties, CDUMgmtSwitchProperties)
        ):
            raise MalformedInput(f"switch {switch.identifier} has no switch properties")

        if len(properties.aliases) != 1:
            raise MalformedInput(
                f"switch {switch.identifier} has unexpected number of aliases "
                f"({len(properties.aliases)}) expected 1"
            )
        alias = properties.aliases[0]

        for network_name in names.fabric:
            network = networks.get(network_name)
            if network is None:
                logger.warning(
                    "Network %s does not exist, skipping address for switch %s",
                    network_name,
                    switch.identifier,
                )
                continue

            subnet = self._hardware_subnet(network)
            reservation = allocate_ip(subnet, switch.identifier, alias)
            subnet.ip_reservations.append(reservation)
            touched.add(network_name)

            logger.info(
                "Allocated %s for switch %s (%s) in %s/%s",
                reservation.address,
                switch.identifier,
                alias,
                network_name,
                subnet.name,
            )
            changes.ip_reservations_added.append(
                IPReservationAllocation(
                    network_name=network_name,
                    subnet_name=subnet.name,
                    reservation=reservation,
                    causing_identifier=switch.identifier,
                )
            )

            if network_name == names.leaf_switch_network and isinstance(properties, MgmtSwitchProperties):
                properties.ip4_addr = str(reservation.address)

    def _is_uan(self, record: HardwareRecord) -> bool:
        properties = record.properties
        return (
            isinstance(properties, NodeProperties)
            and properties.role == NodeRole.application
            and properties.sub_role == self._config.names.uan_sub_role
        )

    def _allocate_uan_ips(
        self,
        uans: List[HardwareRecord],
        networks: Dict[str, NetworkRecord],
        changes: TopologyChanges,
        touched: Set[str],
    ) -> None:
        if not uans:
            return

        names = self._config.names

        pending: List[tuple[str, HardwareRecord]] = []
        for uan in uans:
            aliases = uan.properties.aliases if isinstance(uan.properties, NodeProperties) else []
            if not aliases:
                raise MalformedInput(f"application node ({uan.identifier}) has no defined aliases")
            pending.append((aliases[0], uan))
        pending.sort(key=lambda item: item[0])

        external = [name for name in names.external if name in networks]
        if not external:
            raise MalformedInput(f"no {' or '.join(names.external)} network defined in the current state")

        for network_name in external:
            network = networks[network_name]
            try:
                subnet, _ = network.detail.lookup_subnet(names.uan_subnet)
            except KeyError as err:
                raise MalformedInput(f"network {network_name} has no {names.uan_subnet} subnet") from err

            free = free_ips_in_static_range(subnet)
            if free < len(pending):
                expand_subnet_static_range(subnet, len(pending) - free)

            for alias, uan in pending:
                reservation = allocate_ip(subnet, uan.identifier, alias)
                subnet.ip_reservations.append(reservation)
                logger.info(
                    "Allocated %s for application node %s (%s) in %s/%s",
                    reservation.address,
                    uan.identifier,
                    alias,
                    network_name,
                    subnet.name,
                )
                changes.ip_reservations_added.append(
                    IPReservationAllocation(
                        network_name=network_name,
                        subnet_name=subnet.name,
                        reservation=reservation,
                        causing_identifier=uan.identifier,
                    )
                )

            touched.add(network_name)
