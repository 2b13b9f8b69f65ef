"""
Helpers shared by the time-series adapters.
"""

import math
from typing import Any, Iterable

from siteintel.normalize.config import MISSING_MARKERS
from siteintel.normalize.types import NormalizedSeries, SeriesPoint


def parse_number(value: Any) -> float | None:
    """
    Coerce an upstream value to float, or None when it is missing.

    Handles numbers, numeric strings with thousands separators, and the
    "(NA)"-style markers upstreams use for suppressed data. Zero stays zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if cleaned in MISSING_MARKERS:
            return None
        try:
            number = float(cleaned.replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def build_series(
    label: str,
    upstream_id: str,
    rows: Iterable[tuple[str, float | None]],
    unit: str = "",
    metadata: dict[str, Any] | None = None,
) -> NormalizedSeries:
    """
    Assemble a NormalizedSeries from (period_key, value) rows.

    Rows may arrive in any order; a repeated period keeps its last value.
    """
    by_period: dict[str, float | None] = {}
    for period_key, value in rows:
        by_period[period_key] = value

    return NormalizedSeries(
        label=label,
        upstream_id=upstream_id,
        unit=unit,
        points=[SeriesPoint(period_key=k, value=v) for k, v in sorted(by_period.items())],
        metadata=metadata or {},
    )
