"""Intensity → points."""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any

from warehouse_kpi.models.shipment import Intensity

INTENSITY_POINTS: dict[str, int] = {
    Intensity.high.value: 3,
    Intensity.medium.value: 2,
    Intensity.low.value: 1,
}


def score(intensity: Any) -> int:
    """high=3, medium=2, low=1; null or anything unrecognized scores 0."""
    if isinstance(intensity, Enum):
        intensity = intensity.value
    if not isinstance(intensity, str):
        return 0
    return INTENSITY_POINTS.get(intensity, 0)


def round2(value: float | int | Decimal) -> float:
    """Round half away from zero to 2 dp (Python's round() is banker's rounding)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def ratio(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return round2(Decimal(numerator) / Decimal(denominator))
