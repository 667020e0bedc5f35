"""
Hardware comparison report.

Logged before the guard rail runs, so an operator sees exactly what diverged
even when the pass is refused.
"""

from __future__ import annotations

import json
import logging
from typing import List, Sequence

from topology_reconciler.core.types import HardwareRecord
from topology_reconciler.inventory.diff import HardwarePair
from topology_reconciler.inventory.hardware import hardware_to_sls

logger = logging.getLogger(__name__)


def _section(title: str, lines: List[str]) -> List[str]:
    return [title] + ([f"  {line}" for line in lines] or ["  None"])


def _describe(record: HardwareRecord) -> str:
    return f"{record.identifier} - {json.dumps(hardware_to_sls(record), sort_keys=True)}"


def comparison_report(
    removed: Sequence[HardwareRecord],
    added: Sequence[HardwareRecord],
    identical: Sequence[HardwarePair],
    differing: Sequence[HardwarePair],
) -> List[str]:
    """Return the report as lines, one section per outcome."""
    lines: List[str] = []
    lines += _section(
        "Identical hardware between current and expected states",
        [p.identifier for p in identical],
    )
    lines += _section(
        "Common hardware between current and expected states with differing class or extra properties",
        [p.identifier for p in differing],
    )
    lines += _section("Hardware added to the system", [_describe(r) for r in added])
    lines += _section("Hardware removed from system", [_describe(r) for r in removed])
    return lines


def log_comparison_report(
    removed: Sequence[HardwareRecord],
    added: Sequence[HardwareRecord],
    identical: Sequence[HardwarePair],
    differing: Sequence[HardwarePair],
) -> None:
    for line in comparison_report(removed, added, identical, differing):
        logger.info("%s", line)
