"""
Hardware payload codec.

Converts SLS hardware objects to HardwareRecord with typed payloads and back.

Schema example
{
  "Parent": "x3000c0w14",
  "Xname": "x3000c0w14j38",
  "Type": "comptype_mgmt_switch_connector",
  "Class": "River",
  "TypeString": "MgmtSwitchConnector",
  "ExtraProperties": {"NodeNics": ["x3000c0s3b0"], "VendorName": "1/1/38"}
}

Kinds without a payload variant decode to properties None, and their SLS payload
is carried untouched in untyped_properties. Variant payloads keep the keys they do
not model in extra, and encoding writes the typed fields over those.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import (
    CabinetNetwork,
    CabinetProperties,
    CDUMgmtSwitchProperties,
    HardwareClass,
    HardwareKind,
    HardwareProperties,
    HardwareRecord,
    MgmtHLSwitchProperties,
    MgmtSwitchConnectorProperties,
    MgmtSwitchProperties,
    NodeProperties,
    RouterBMCProperties,
)
from topology_reconciler.core.xname import kind_of, parent_of

# Which payload variant belongs to which kind.
PROPERTIES_FOR_KIND: Dict[HardwareKind, type] = {
    HardwareKind.node: NodeProperties,
    HardwareKind.mgmt_switch: MgmtSwitchProperties,
    HardwareKind.mgmt_hl_switch: MgmtHLSwitchProperties,
    HardwareKind.cdu_mgmt_switch: CDUMgmtSwitchProperties,
    HardwareKind.cabinet: CabinetProperties,
    HardwareKind.router_bmc: RouterBMCProperties,
    HardwareKind.mgmt_switch_connector: MgmtSwitchConnectorProperties,
}


def parse_class(value: Any) -> HardwareClass:
    """Convert a class string to HardwareClass."""
    try:
        return HardwareClass(str(value))
    except ValueError as err:
        raise MalformedInput(f"unknown hardware class ({value})") from err


def new_hardware(
    identifier: str,
    hardware_class: HardwareClass,
    properties: Optional[HardwareProperties] = None,
) -> HardwareRecord:
    """
    Build a HardwareRecord, deriving kind and parent from the identifier.

    The payload variant must match the kind. Kinds without a variant take None.
    """
    kind = kind_of(identifier)
    expected: Optional[type] = PROPERTIES_FOR_KIND.get(kind)

    if properties is not None and (expected is None or not isinstance(properties, expected)):
        raise MalformedInput(
            f"hardware ({identifier}) of kind {kind.value} cannot carry {type(properties).__name__}"
        )

    return HardwareRecord(
        identifier=identifier,
        parent_identifier=parent_of(identifier),
        hardware_class=hardware_class,
        kind=kind,
        properties=properties,
    )


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return [str(v) for v in value]


def _node(raw: dict[str, Any]) -> NodeProperties:
    nid = raw.get("NID")
    return NodeProperties(
        role=str(raw.get("Role", "")),
        sub_role=str(raw.get("SubRole", "") or ""),
        nid=int(nid) if nid is not None else None,
        aliases=_str_list(raw.get("Aliases")),
    )


def _mgmt_switch(raw: dict[str, Any]) -> MgmtSwitchProperties:
    return MgmtSwitchProperties(
        brand=str(raw.get("Brand", "")),
        model=str(raw.get("Model", "")),
        aliases=_str_list(raw.get("Aliases")),
        ip4_addr=str(raw.get("IP4addr", "") or ""),
        snmp_auth_password=str(raw.get("SNMPAuthPassword", "") or ""),
        snmp_auth_protocol=str(raw.get("SNMPAuthProtocol", "") or ""),
        snmp_priv_password=str(raw.get("SNMPPrivPassword", "") or ""),
        snmp_priv_protocol=str(raw.get("SNMPPrivProtocol", "") or ""),
        snmp_username=str(raw.get("SNMPUsername", "") or ""),
    )


def _mgmt_hl_switch(raw: dict[str, Any]) -> MgmtHLSwitchProperties:
    return MgmtHLSwitchProperties(
        brand=str(raw.get("Brand", "")),
        model=str(raw.get("Model", "") or ""),
        aliases=_str_list(raw.get("Aliases")),
        ip4_addr=str(raw.get("IP4addr", "") or ""),
    )


def _cdu_mgmt_switch(raw: dict[str, Any]) -> CDUMgmtSwitchProperties:
    return CDUMgmtSwitchProperties(
        brand=str(raw.get("Brand", "")),
        model=str(raw.get("Model", "") or ""),
        aliases=_str_list(raw.get("Aliases")),
    )


def _cabinet(raw: dict[str, Any]) -> CabinetProperties:
    networks: Dict[str, Dict[str, CabinetNetwork]] = {}
    for group, families in (raw.get("Networks") or {}).items():
        networks[str(group)] = {}
        for family, net in (families or {}).items():
            networks[str(group)][str(family)] = CabinetNetwork(
                cidr=str(net.get("CIDR", "")),
                gateway=str(net.get("Gateway", "")),
                vlan=int(net.get("VLan", 0)),
            )
    return CabinetProperties(model=str(raw.get("Model", "") or ""), networks=networks)


def _router_bmc(raw: dict[str, Any]) -> RouterBMCProperties:
    return RouterBMCProperties(
        username=str(raw.get("Username", "")),
        password=str(raw.get("Password", "")),
    )


def _connector(raw: dict[str, Any]) -> MgmtSwitchConnectorProperties:
    return MgmtSwitchConnectorProperties(
        node_nics=_str_list(raw.get("NodeNics")),
        vendor_name=str(raw.get("VendorName", "")),
    )


# ExtraProperties keys each variant decodes.
_MODELLED_KEYS: Dict[Type[Any], frozenset[str]] = {
    NodeProperties: frozenset({"Role", "SubRole", "NID", "Aliases"}),
    MgmtSwitchProperties: frozenset(
        {
            "Brand",
            "Model",
            "Aliases",
            "IP4addr",
            "SNMPAuthPassword",
            "SNMPAuthProtocol",
            "SNMPPrivPassword",
            "SNMPPrivProtocol",
            "SNMPUsername",
        }
    ),
    MgmtHLSwitchProperties: frozenset({"Brand", "Model", "Aliases", "IP4addr"}),
    CDUMgmtSwitchProperties: frozenset({"Brand", "Model", "Aliases"}),
    CabinetProperties: frozenset({"Model", "Networks"}),
    RouterBMCProperties: frozenset({"Username", "Password"}),
    MgmtSwitchConnectorProperties: frozenset({"NodeNics", "VendorName"}),
}


_DECODERS: Dict[Type[Any], Callable[[dict[str, Any]], HardwareProperties]] = {
    NodeProperties: _node,
    MgmtSwitchProperties: _mgmt_switch,
    MgmtHLSwitchProperties: _mgmt_hl_switch,
    CDUMgmtSwitchProperties: _cdu_mgmt_switch,
    CabinetProperties: _cabinet,
    RouterBMCProperties: _router_bmc,
    MgmtSwitchConnectorProperties: _connector,
}


def decode_properties(kind: HardwareKind, raw: Any, identifier: str) -> Optional[HardwareProperties]:
    """Decode an ExtraProperties payload into the variant for this kind."""
    variant = PROPERTIES_FOR_KIND.get(kind)
    if variant is None or raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedInput(f"hardware ({identifier}): ExtraProperties must be an object")

    try:
        properties = _DECODERS[variant](raw)
    except (AttributeError, TypeError, ValueError) as err:
        raise MalformedInput(f"hardware ({identifier}): malformed ExtraProperties: {err}") from err

    properties.extra = {k: v for k, v in raw.items() if k not in _MODELLED_KEYS[variant]}
    return properties


def encode_properties(properties: Optional[HardwareProperties]) -> Optional[dict[str, Any]]:
    """Encode a payload variant into the SLS ExtraProperties shape, keeping unmodelled keys."""
    if properties is None:
        return None
    return {**properties.extra, **_encode_modelled(properties)}


def _encode_modelled(properties: HardwareProperties) -> dict[str, Any]:
    if isinstance(properties, NodeProperties):
        out: dict[str, Any] = {"Role": properties.role}
        if properties.sub_role:
            out["SubRole"] = properties.sub_role
        if properties.nid is not None:
            out["NID"] = properties.nid
        out["Aliases"] = list(properties.aliases)
        return out

    if isinstance(properties, MgmtSwitchProperties):
        out = {
            "Brand": properties.brand,
            "Model": properties.model,
            "Aliases": list(properties.aliases),
            "SNMPAuthPassword": properties.snmp_auth_password,
            "SNMPAuthProtocol": properties.snmp_auth_protocol,
            "SNMPPrivPassword": properties.snmp_priv_password,
            "SNMPPrivProtocol": properties.snmp_priv_protocol,
            "SNMPUsername": properties.snmp_username,
        }
        if properties.ip4_addr:
            out["IP4addr"] = properties.ip4_addr
        return out

    if isinstance(properties, MgmtHLSwitchProperties):
        out = {"Brand": properties.brand, "Model": properties.model, "Aliases": list(properties.aliases)}
        if properties.ip4_addr:
            out["IP4addr"] = properties.ip4_addr
        return out

    if isinstance(properties, CDUMgmtSwitchProperties):
        return {"Brand": properties.brand, "Model": properties.model, "Aliases": list(properties.aliases)}

    if isinstance(properties, CabinetProperties):
        out = {
            "Networks": {
                group: {
                    family: {"CIDR": net.cidr, "Gateway": net.gateway, "VLan": net.vlan}
                    for family, net in families.items()
                }
                for group, families in properties.networks.items()
            }
        }
        if properties.model:
            out["Model"] = properties.model
        return out

    if isinstance(properties, RouterBMCProperties):
        return {"Username": properties.username, "Password": properties.password}

    if isinstance(properties, MgmtSwitchConnectorProperties):
        return {"NodeNics": list(properties.node_nics), "VendorName": properties.vendor_name}

    raise TypeError(f"unsupported hardware properties {type(properties).__name__}")


def hardware_from_sls(obj: dict[str, Any]) -> HardwareRecord:
    """Convert an SLS hardware object into a HardwareRecord."""
    identifier = obj.get("Xname")
    if not isinstance(identifier, str) or not identifier:
        raise MalformedInput("hardware object missing Xname")

    hardware_class = parse_class(obj.get("Class"))
    kind = kind_of(identifier)
    raw = obj.get("ExtraProperties")
    record = new_hardware(identifier, hardware_class, decode_properties(kind, raw, identifier))
    if kind not in PROPERTIES_FOR_KIND and isinstance(raw, dict):
        record.untyped_properties = dict(raw)
    return record


def hardware_to_sls(record: HardwareRecord) -> dict[str, Any]:
    """Convert a HardwareRecord into an SLS hardware object."""
    out: dict[str, Any] = {
        "Parent": record.parent_identifier,
        "Xname": record.identifier,
        "Type": record.comptype,
        "Class": record.hardware_class.value,
        "TypeString": record.kind.value,
    }
    extra = encode_properties(record.properties)
    if extra is None and record.untyped_properties is not None:
        extra = dict(record.untyped_properties)
    if extra is not None:
        out["ExtraProperties"] = extra
    return out
