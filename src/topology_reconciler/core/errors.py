"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
GuardRailViolation means the topology file and the inventory diverged in a way
this tool does not reconcile, an operator has to step in.
OutsideStaticRange can be resolved by expanding the static range and retrying once.
AddressSpaceExhausted will never succeed on retry without operator intervention.
InventoryUnavailable means SLS could not be reached or refused a request.

None of these are caught inside the core. A reconciliation pass either returns a
complete change set or raises.
"""


class ReconcilerError(Exception):
    """Base class for all reconciler exceptions."""


class MalformedInput(ReconcilerError):
    """Raised when a CIDR, IP address, identifier or payload cannot be parsed."""


class AddressSpaceExhausted(ReconcilerError):
    """Raised when a subnet has no free host address left."""


class SubnetSpaceExhausted(ReconcilerError):
    """Raised when a network has no free subnet block of the requested size left."""


class DuplicateReservation(ReconcilerError):
    """Raised when an alias or owner already holds a reservation in the target subnet."""


class DuplicateSubnet(ReconcilerError):
    """Raised when a subnet with the derived name already exists in the network."""


class OutsideStaticRange(ReconcilerError):
    """Raised when an allocation would land in the dynamic DHCP pool."""


class InvalidRange(ReconcilerError):
    """Raised when an address range adjustment would invert or collapse a range."""


class VlanRequired(ReconcilerError):
    """Raised when a cabinet subnet is allocated without an explicit VLAN."""


class GuardRailViolation(ReconcilerError):
    """
    Raised when removed hardware or hardware with differing values is detected.

    identifiers holds the offending hardware identifiers so callers can report them.
    """

    def __init__(self, message: str, identifiers: list[str] | None = None) -> None:
        super().__init__(message)
        self.identifiers = list(identifiers or [])


class UnknownArchitecture(MalformedInput):
    """Raised when the topology file holds a device architecture the builder does not know."""


class InventoryUnavailable(ReconcilerError):
    """Raised when the inventory service cannot be reached or rejects a request."""
