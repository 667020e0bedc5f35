from __future__ import annotations

from typing import Any

from topology_reconciler.core.types import TopologyChanges
from topology_reconciler.inventory.hardware import hardware_to_sls
from topology_reconciler.inventory.network import network_to_sls


def inventory_state_to_json(state: Any) -> dict[str, Any]:
    """
    SLS dump transport shape.

    We only rely on state.all returning HardwareRecord dataclasses and
    state.networks mapping names to NetworkRecord.
    """
    return {
        "Hardware": {rec.identifier: hardware_to_sls(rec) for rec in state.all()},
        "Networks": {name: network_to_sls(net) for name, net in sorted(state.networks.items())},
    }


def topology_changes_to_json(changes: TopologyChanges) -> dict[str, Any]:
    """
    Change set transport shape.

    Hardware and networks use the SLS shape so the output can be pushed as is.
    Audit entries carry the allocated values as strings.
    """
    return {
        "HardwareAdded": [hardware_to_sls(rec) for rec in changes.hardware_added],
        "ModifiedNetworks": {
            name: network_to_sls(net) for name, net in sorted(changes.modified_networks.items())
        },
        "SubnetsAdded": [
            {
                "NetworkName": event.network_name,
                "SubnetName": event.subnet_name,
                "CIDR": str(event.subnet.cidr),
                "VlanID": event.subnet.vlan_id,
                "CausingXname": event.causing_identifier,
            }
            for event in changes.subnets_added
        ],
        "IPReservationsAdded": [
            {
                "NetworkName": event.network_name,
                "SubnetName": event.subnet_name,
                "IPAddress": str(event.reservation.address),
                "Name": event.reservation.name,
                "CausingXname": event.causing_identifier,
            }
            for event in changes.ip_reservations_added
        ],
    }
