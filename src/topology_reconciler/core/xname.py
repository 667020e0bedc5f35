"""
Identifier helpers.

Identifiers (xnames) encode physical lineage:
x3000          cabinet 3000
x3000c0        chassis 0 in that cabinet
x3000c0s17b0   BMC 0 of the compute module in slot 17
x3000c0s17b0n0 node 0 behind that BMC

The reconciler needs three questions answered from an identifier:
what kind of hardware is this, what is its parent, and which cabinet holds it.

We keep the shapes in one ordered table so kind detection stays consistent.
"""

from __future__ import annotations

import re

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareKind

# Parent of a top level identifier, the system itself.
SYSTEM_IDENTIFIER = "s0"

_PATTERNS: list[tuple[HardwareKind, re.Pattern[str]]] = [
    (HardwareKind.cabinet, re.compile(r"^x(\d+)$")),
    (HardwareKind.cdu, re.compile(r"^d(\d+)$")),
    (HardwareKind.cdu_mgmt_switch, re.compile(r"^d(\d+)w(\d+)$")),
    (HardwareKind.cabinet_pdu_controller, re.compile(r"^x(\d+)m(\d+)$")),
    (HardwareKind.chassis, re.compile(r"^x(\d+)c(\d+)$")),
    (HardwareKind.chassis_bmc, re.compile(r"^x(\d+)c(\d+)b(\d+)$")),
    (HardwareKind.compute_module, re.compile(r"^x(\d+)c(\d+)s(\d+)$")),
    (HardwareKind.node_bmc, re.compile(r"^x(\d+)c(\d+)s(\d+)b(\d+)$")),
    (HardwareKind.node, re.compile(r"^x(\d+)c(\d+)s(\d+)b(\d+)n(\d+)$")),
    (HardwareKind.router_module, re.compile(r"^x(\d+)c(\d+)r(\d+)$")),
    (HardwareKind.router_bmc, re.compile(r"^x(\d+)c(\d+)r(\d+)b(\d+)$")),
    (HardwareKind.mgmt_switch, re.compile(r"^x(\d+)c(\d+)w(\d+)$")),
    (HardwareKind.mgmt_switch_connector, re.compile(r"^x(\d+)c(\d+)w(\d+)j(\d+)$")),
    (HardwareKind.mgmt_hl_switch_enclosure, re.compile(r"^x(\d+)c(\d+)h(\d+)$")),
    (HardwareKind.mgmt_hl_switch, re.compile(r"^x(\d+)c(\d+)h(\d+)s(\d+)$")),
]

_LAST_COMPONENT = re.compile(r"[a-z]\d+$")

_CONTROLLER_KINDS = {
    HardwareKind.chassis_bmc,
    HardwareKind.node_bmc,
    HardwareKind.router_bmc,
    HardwareKind.cabinet_pdu_controller,
}


def _match(identifier: str) -> tuple[HardwareKind, tuple[int, ...]]:
    normalized = identifier.strip().lower()
    for kind, pattern in _PATTERNS:
        m = pattern.match(normalized)
        if m:
            return kind, tuple(int(g) for g in m.groups())
    raise MalformedInput(f"unrecognized hardware identifier ({identifier})")


def kind_of(identifier: str) -> HardwareKind:
    """Return the hardware kind for an identifier, or raise MalformedInput."""
    kind, _ = _match(identifier)
    return kind


def ordinals(identifier: str) -> tuple[int, ...]:
    """Return the numeric components of an identifier, outermost first."""
    _, nums = _match(identifier)
    return nums


def parent_of(identifier: str) -> str:
    """
    Return the identifier of the immediate structural parent.

    Cabinets and CDUs hang off the system identifier s0.
    """
    _match(identifier)
    parent = _LAST_COMPONENT.sub("", identifier.strip().lower())
    return parent or SYSTEM_IDENTIFIER


def cabinet_of(identifier: str) -> str:
    """
    Return the cabinet identifier that holds this hardware.

    Only valid for x prefixed identifiers, CDU hardware has no cabinet.
    """
    normalized = identifier.strip().lower()
    if not normalized.startswith("x"):
        raise MalformedInput(f"identifier ({identifier}) is not located in a cabinet")
    return f"x{ordinals(normalized)[0]}"


def cabinet_ordinal(identifier: str) -> int:
    """Return the cabinet number of a cabinet identifier, x3001 gives 3001."""
    kind, nums = _match(identifier)
    if kind != HardwareKind.cabinet:
        raise MalformedInput(f"identifier ({identifier}) is not a cabinet")
    return nums[0]


def is_controller(kind: HardwareKind) -> bool:
    """Return True for BMC and PDU controller kinds, the things plugged into the HMN."""
    return kind in _CONTROLLER_KINDS
