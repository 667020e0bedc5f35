"""
Address space allocator.

Pure functions over Subnet and NetworkDetail values. There is no persistent state
here, callers own the network objects and decide when to mutate them.

Determinism
Every search walks addresses or blocks in ascending numeric order and returns the
lowest free candidate. Running the same allocation twice against unchanged state
gives the same answer, which keeps repeated reconciliation passes idempotent.

Address arithmetic
All stepping is done on the unsigned 32 bit integer value of the address. We never
manipulate address strings.
"""

from __future__ import annotations

import logging
from ipaddress import IPv4Address, IPv4Network
from typing import Optional

from topology_reconciler.core.errors import (
    AddressSpaceExhausted,
    DuplicateReservation,
    DuplicateSubnet,
    InvalidRange,
    OutsideStaticRange,
    SubnetSpaceExhausted,
    VlanRequired,
)
from topology_reconciler.core.types import IPReservation, NetworkDetail, Subnet
from topology_reconciler.core.xname import cabinet_ordinal

logger = logging.getLogger(__name__)

MIN_SUBNET_PREFIX = 16
MAX_SUBNET_PREFIX = 30
DEFAULT_CABINET_PREFIX = 22

# Addresses between the gateway and this offset are kept for static infrastructure.
CABINET_DHCP_START_OFFSET = 10

_MAX_IPV4 = 0xFFFFFFFF


def _in_use(subnet: Subnet) -> set[IPv4Address]:
    used = {subnet.gateway}
    for reservation in subnet.ip_reservations:
        used.add(reservation.address)
    return used


def advance_ip(ip: IPv4Address, n: int) -> IPv4Address:
    """
    Return ip advanced by n addresses.

    Raises InvalidRange if n is negative or the result leaves the IPv4 space.
    """
    if n < 0:
        raise InvalidRange(f"cannot advance {ip} by a negative count {n}")

    raw = int(ip) + n
    if raw > _MAX_IPV4:
        raise InvalidRange(f"advancing {ip} by {n} leaves the IPv4 address space")
    return IPv4Address(raw)


def find_next_available_ip(subnet: Subnet) -> IPv4Address:
    """
    Return the lowest host address in the subnet that is not in use.

    In use means the gateway or any reservation address.
    The scan starts after the network address and stops before the broadcast address.
    """
    used = _in_use(subnet)

    first = int(subnet.cidr.network_address) + 1
    broadcast = int(subnet.cidr.broadcast_address)

    for value in range(first, broadcast):
        candidate = IPv4Address(value)
        if candidate not in used:
            return candidate

    raise AddressSpaceExhausted(f"subnet {subnet.name} ({subnet.cidr}) has no available IPs")


def split_network(network: IPv4Network, prefix_length: int) -> list[IPv4Network]:
    """
    Partition a network into consecutive blocks of a fixed prefix length.

    Blocks start at the network base address. The loop stops once the next block
    start is past the end of the network, so a block never starts outside it.

    Prefix lengths outside [16, 30] are rejected up front.
    A prefix shorter than the network's own prefix yields no blocks.
    """
    if prefix_length < MIN_SUBNET_PREFIX or prefix_length > MAX_SUBNET_PREFIX:
        raise InvalidRange(f"invalid subnet mask provided /{prefix_length}")

    if prefix_length < network.prefixlen:
        return []

    step = 2 ** (32 - prefix_length)
    start = int(network.network_address)
    end = int(network.broadcast_address)

    blocks: list[IPv4Network] = []
    while start <= end:
        blocks.append(IPv4Network((start, prefix_length)))
        start += step

    return blocks


def find_next_available_subnet(
    detail: NetworkDetail,
    prefix_length: int = DEFAULT_CABINET_PREFIX,
) -> IPv4Network:
    """
    Return the first block of the given size that no existing subnet consumes.

    Existing subnets need not be the nominal size. A block is consumed when any
    existing subnet covers part of it, which includes the block start.
    """
    existing = [subnet.cidr for subnet in detail.subnets]

    for block in split_network(detail.cidr, prefix_length):
        if any(block.overlaps(other) for other in existing):
            logger.debug("subnet block %s taken", block)
            continue
        logger.debug("subnet block %s is free", block)
        return block

    raise SubnetSpaceExhausted(
        f"network space {detail.cidr} has been exhausted for /{prefix_length} subnets"
    )


def cabinet_subnet_name(cabinet_identifier: str) -> str:
    """Return the subnet name used for a cabinet, x3001 gives cabinet_3001."""
    return f"cabinet_{cabinet_ordinal(cabinet_identifier)}"


def allocate_cabinet_subnet(
    detail: NetworkDetail,
    cabinet_identifier: str,
    vlan_override: Optional[int],
    prefix_length: int = DEFAULT_CABINET_PREFIX,
) -> Subnet:
    """
    Carve a new cabinet subnet out of the network.

    Layout of the returned subnet
    gateway is the first host address
    dhcp_start is ten addresses into the block
    dhcp_end is the last host address

    The subnet is returned, not appended. The caller records it.

    VLAN inference is not implemented, so vlan_override is required.
    """
    try:
        block = find_next_available_subnet(detail, prefix_length)
    except SubnetSpaceExhausted as err:
        raise SubnetSpaceExhausted(
            f"failed to allocate subnet for ({cabinet_identifier}) in CIDR ({detail.cidr}): {err}"
        ) from err

    name = cabinet_subnet_name(cabinet_identifier)
    if detail.has_subnet(name):
        raise DuplicateSubnet(f"subnet ({name}) already exists in CIDR ({detail.cidr})")

    if vlan_override is None:
        raise VlanRequired(f"no VLAN provided for cabinet subnet ({name}) of ({cabinet_identifier})")

    start = block.network_address
    return Subnet(
        name=name,
        cidr=block,
        gateway=advance_ip(start, 1),
        vlan_id=vlan_override,
        dhcp_start=advance_ip(start, CABINET_DHCP_START_OFFSET),
        dhcp_end=IPv4Address(int(block.broadcast_address) - 1),
    )


def allocate_ip(subnet: Subnet, owner_identifier: str, alias: str) -> IPReservation:
    """
    Reserve the next free static address in the subnet for a piece of hardware.

    Checks
    1) the alias is not already reserved in this subnet
    2) the owner does not already hold a reservation in this subnet
    3) the address sorts below dhcp_start when the subnet has a DHCP range

    The reservation is returned, not appended. The caller records it.
    """
    ip = find_next_available_ip(subnet)

    for reservation in subnet.ip_reservations:
        if reservation.name == alias:
            raise DuplicateReservation(
                f"ip reservation with name ({alias}) already exists in subnet ({subnet.name})"
            )
        if owner_identifier and reservation.owner_id == owner_identifier:
            raise DuplicateReservation(
                f"ip reservation with xname ({owner_identifier}) already exists in subnet ({subnet.name})"
            )

    if subnet.dhcp_start is not None and not ip < subnet.dhcp_start:
        raise OutsideStaticRange(
            f"ip reservation with xname ({owner_identifier}) and IP {ip} is outside the static IP "
            f"address range of subnet ({subnet.name}) - starting DHCP IP is {subnet.dhcp_start}"
        )

    return IPReservation(address=ip, name=alias, owner_id=owner_identifier)


def free_ips_in_static_range(subnet: Subnet) -> int:
    """
    Count unused addresses in the static range.

    The static range is every host address below dhcp_start.
    A subnet without a DHCP range is static end to end.
    """
    used = _in_use(subnet)

    first = int(subnet.cidr.network_address) + 1
    upper = int(subnet.cidr.broadcast_address)
    if subnet.dhcp_start is not None:
        upper = min(upper, int(subnet.dhcp_start))

    return sum(1 for value in range(first, upper) if IPv4Address(value) not in used)


def expand_subnet_static_range(subnet: Subnet, count: int) -> None:
    """
    Move dhcp_start forward by count addresses.

    This trades dynamic capacity for static capacity. dhcp_end is never touched.
    The subnet is only updated if the new start stays strictly below dhcp_end.
    """
    if subnet.dhcp_start is None or subnet.dhcp_end is None:
        raise InvalidRange(f"subnet ({subnet.name}) does not have a DHCP range")

    new_start = advance_ip(subnet.dhcp_start, count)
    if not new_start < subnet.dhcp_end:
        raise InvalidRange(
            f"new DHCP start address {new_start} is equal or larger than the DHCP end address "
            f"{subnet.dhcp_end} in subnet ({subnet.name})"
        )

    logger.info(
        "Expanding static range of subnet %s by %d, DHCP start %s -> %s",
        subnet.name,
        count,
        subnet.dhcp_start,
        new_start,
    )
    subnet.dhcp_start = new_start
