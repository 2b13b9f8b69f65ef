"""
Crime statistics adapter (FBI Crime Data Explorer estimates).

Payload shape::

    {"results": [{"year": 2022, "population": 10698973,
                  "violent_crime": 43954, "property_crime": 205380, ...}]}

Older responses use ``data_year`` instead of ``year``.
"""

from typing import Any

from siteintel.normalize.config import FBI_OFFENSE_FIELDS
from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import NormalizedSeries
from siteintel.services.errors import NormalizationError

PER_CAPITA = 100_000


def _offense_value(item: dict[str, Any], field: str, measure: str) -> float | None:
    count = parse_number(item.get(field))
    if measure == "count":
        return count

    rate = parse_number(item.get(f"{field}_rate"))
    if rate is not None:
        return rate
    population = parse_number(item.get("population"))
    if count is None or not population:
        return None
    return count / population * PER_CAPITA


def normalize_crime(
    payload: Any,
    *,
    upstream_id: str = "fbi",
    label: str | None = None,
    unit: str | None = None,
    offense: str = "violent-crime",
    measure: str = "rate",
    **_: Any,
) -> NormalizedSeries:
    """Convert FBI estimates to an annual series of counts or rates per 100k."""
    if measure not in ("rate", "count"):
        raise NormalizationError(f"Unknown crime measure '{measure}'", service_id=upstream_id)

    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        raise NormalizationError("FBI payload has no results list", service_id=upstream_id)

    field = FBI_OFFENSE_FIELDS.get(offense, offense.replace("-", "_"))
    rows = []
    for item in results:
        if not isinstance(item, dict):
            continue
        year = item.get("year", item.get("data_year"))
        if year is None or not str(year).isdigit():
            continue
        rows.append((str(year), _offense_value(item, field, measure)))

    if label is None:
        label = offense.replace("-", " ").title()
        label += " rate" if measure == "rate" else " count"
    if unit is None:
        unit = "per 100k" if measure == "rate" else "incidents"

    return build_series(
        label,
        upstream_id,
        rows,
        unit=unit,
        metadata={"offense": offense, "measure": measure},
    )
