"""Assignment expander — one (shipment, operator) row per name on a shipment."""
from __future__ import annotations

import logging
from typing import Iterable, Mapping

from warehouse_kpi.models.operator import Operator
from warehouse_kpi.models.shipment import Assignment, Shipment

logger = logging.getLogger(__name__)


def operator_directory(operators: Iterable[Operator]) -> dict[str, Operator]:
    """Name → operator. Names are matched exactly, case included."""
    return {o.name: o for o in operators}


def expand(shipment: Shipment, directory: Mapping[str, Operator]) -> list[Assignment]:
    """Expand a shipment's operator-name list into assignment rows.

    Row count always equals the list length: repeated names expand twice and
    unknown names come back with operator_id=None.
    """
    rows: list[Assignment] = []
    for name in shipment.assigned_operators or []:
        op = directory.get(name)
        if op is None:
            logger.debug("Shipment %s: operator name %r matches no operator", shipment.id, name)
        rows.append(Assignment(
            shipment_id=shipment.id,
            operator_name=name,
            operator_id=op.id if op else None,
        ))
    return rows
