"""
IPAM package.

Address and subnet allocation over decoded network state.
"""

from topology_reconciler.ipam.allocator import (
    allocate_cabinet_subnet,
    allocate_ip,
    expand_subnet_static_range,
    find_next_available_ip,
    find_next_available_subnet,
    free_ips_in_static_range,
)

__all__ = [
    "allocate_cabinet_subnet",
    "allocate_ip",
    "expand_subnet_static_range",
    "find_next_available_ip",
    "find_next_available_subnet",
    "free_ips_in_static_range",
]
