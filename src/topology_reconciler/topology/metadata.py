"""
Operator supplied metadata files.

Application node metadata
The topology file cannot tell what an application node is for or what it is
called. Operators provide that in a YAML file keyed by node identifier:

x3000c0s19b0n0:
  sub_role: UAN
  aliases:
    - uan01

New nodes are seeded with FIXME_VALUE placeholders that must be replaced before
the reconciler will run.

Cabinet VLANs
The reconciler does not infer cabinet VLANs. They are given per cabinet and per
network family:

x3001:
  HMN: 1513
  NMN: 1770
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from topology_reconciler.core.errors import MalformedInput
from topology_reconciler.core.types import HardwareKind, NodeProperties, NodeRole
from topology_reconciler.inventory.store import InventoryState

logger = logging.getLogger(__name__)

FIXME_VALUE = "~~FIXME~~"


@dataclass
class ApplicationNodeMetadata:
    sub_role: str
    aliases: List[str] = field(default_factory=list)


ApplicationNodeMetadataMap = Dict[str, ApplicationNodeMetadata]

CabinetVlans = Dict[str, Dict[str, int]]


def all_aliases(metadata: ApplicationNodeMetadataMap) -> Dict[str, List[str]]:
    """Return alias -> sorted identifiers using it. Any list longer than one is a conflict."""
    out: Dict[str, List[str]] = {}
    for identifier, entry in metadata.items():
        for alias in entry.aliases:
            out.setdefault(alias, []).append(identifier)
    for identifiers in out.values():
        identifiers.sort()
    return out


def duplicate_aliases(metadata: ApplicationNodeMetadataMap) -> Dict[str, List[str]]:
    return {alias: ids for alias, ids in all_aliases(metadata).items() if len(ids) > 1}


def find_fixmes(metadata: ApplicationNodeMetadataMap) -> List[str]:
    """Return identifiers whose sub role or aliases still hold the placeholder."""
    found = []
    for identifier in sorted(metadata):
        entry = metadata[identifier]
        if entry.sub_role == FIXME_VALUE or FIXME_VALUE in entry.aliases:
            found.append(identifier)
    return found


def placeholder_metadata() -> ApplicationNodeMetadata:
    return ApplicationNodeMetadata(sub_role=FIXME_VALUE, aliases=[FIXME_VALUE])


def metadata_from_inventory(state: InventoryState) -> ApplicationNodeMetadataMap:
    """Collect metadata of the application nodes already recorded in the inventory."""
    out: ApplicationNodeMetadataMap = {}
    for rec in state.all():
        if rec.kind != HardwareKind.node or not isinstance(rec.properties, NodeProperties):
            continue
        if rec.properties.role != NodeRole.application:
            continue
        out[rec.identifier] = ApplicationNodeMetadata(
            sub_role=rec.properties.sub_role,
            aliases=list(rec.properties.aliases),
        )
    return out


def _read_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as err:
        raise MalformedInput(f"unable to read {path}: {err}") from err
    except yaml.YAMLError as err:
        raise MalformedInput(f"{path} is not valid yaml: {err}") from err


def metadata_from_dict(data: Any) -> ApplicationNodeMetadataMap:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedInput("application node metadata must be a mapping")

    out: ApplicationNodeMetadataMap = {}
    for identifier, raw in data.items():
        if not isinstance(raw, dict):
            raise MalformedInput(f"application node metadata for {identifier} must be a mapping")
        aliases = raw.get("aliases") or []
        if not isinstance(aliases, list):
            raise MalformedInput(f"aliases for {identifier} must be a list")
        out[str(identifier)] = ApplicationNodeMetadata(
            sub_role=str(raw.get("sub_role", "") or ""),
            aliases=[str(a) for a in aliases],
        )
    return out


def load_application_node_metadata(path: Path) -> ApplicationNodeMetadataMap:
    logger.info("Using application node metadata file at %s", path)
    return metadata_from_dict(_read_yaml(path))


def save_application_node_metadata(path: Path, metadata: ApplicationNodeMetadataMap) -> None:
    """Write metadata as YAML. Refuses to overwrite an existing file."""
    if path.exists():
        raise MalformedInput(f"{path} already exists, refusing to overwrite")

    data = {
        identifier: {"sub_role": entry.sub_role, "aliases": list(entry.aliases)}
        for identifier, entry in sorted(metadata.items())
    }
    path.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")
    logger.info("Application node metadata file is now available at %s", path)


def load_cabinet_vlans(path: Path) -> CabinetVlans:
    """Read cabinet -> {network family -> vlan}."""
    data = _read_yaml(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedInput("cabinet vlan file must be a mapping")

    out: CabinetVlans = {}
    for cabinet, families in data.items():
        if not isinstance(families, dict):
            raise MalformedInput(f"vlans for cabinet {cabinet} must be a mapping")
        try:
            out[str(cabinet)] = {str(family): int(vlan) for family, vlan in families.items()}
        except (TypeError, ValueError) as err:
            raise MalformedInput(f"cabinet {cabinet} has a malformed vlan: {err}") from err
    return out
