"""
Housing adapter (HUD USPS vacancy data by ZIP).

Payload shape::

    {"data": [{"year": "2024", "quarter": "2", "zip": "28202",
               "total": 19234, "vacant": 1012, "occupied": 17801,
               "no_stat": 421}]}

Newer API versions nest the rows as ``{"data": {"results": [...]}}``; both
are accepted. Periods are quarters keyed ``YYYY-Qn``.
"""

from typing import Any

from siteintel.normalize.config import HUD_LOOKBACK_QUARTERS, HUD_MEASURES
from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import NormalizedSeries
from siteintel.services.errors import NormalizationError


def _rate(row: dict[str, Any], field: str) -> float | None:
    total = parse_number(row.get("total"))
    part = parse_number(row.get(field))
    if total is None or part is None or total <= 0:
        return None
    return part / total * 100


def _quarter_key(row: dict[str, Any]) -> str | None:
    year = str(row.get("year", "")).strip()
    quarter = str(row.get("quarter", "")).strip().upper().lstrip("Q")
    if len(year) != 4 or not year.isdigit() or quarter not in ("1", "2", "3", "4"):
        return None
    return f"{year}-Q{quarter}"


def normalize_housing(
    payload: Any,
    *,
    upstream_id: str = "hud",
    label: str | None = None,
    measure: str = "vacancy_rate",
    lookback_quarters: int = HUD_LOOKBACK_QUARTERS,
    zip_code: str | None = None,
    **_: Any,
) -> NormalizedSeries:
    """
    Convert a HUD USPS response to a quarterly rate series.

    Only the most recent ``lookback_quarters`` quarters are kept. Metadata
    carries the latest address counts and the change in the rate against
    the same quarter a year earlier, looked up over the full response.
    """
    if measure not in HUD_MEASURES:
        raise NormalizationError(f"Unknown HUD measure '{measure}'", service_id=upstream_id)

    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, dict):
        data = data.get("results")
    if not isinstance(data, list):
        raise NormalizationError("HUD payload has no data list", service_id=upstream_id)

    field, base_label = HUD_MEASURES[measure]
    quarters: dict[str, dict[str, Any]] = {}
    for row in data:
        if not isinstance(row, dict):
            continue
        key = _quarter_key(row)
        if key is not None:
            quarters[key] = row

    ordered = sorted(quarters)
    kept = ordered[-lookback_quarters:] if lookback_quarters > 0 else ordered
    rows = [(key, _rate(quarters[key], field)) for key in kept]

    metadata: dict[str, Any] = {"zip": zip_code}
    if kept:
        latest_key = kept[-1]
        latest = quarters[latest_key]
        year, quarter = latest_key.split("-")
        year_ago = quarters.get(f"{int(year) - 1}-{quarter}")

        change_1yr = None
        latest_rate = _rate(latest, field)
        if year_ago is not None:
            prior_rate = _rate(year_ago, field)
            if latest_rate is not None and prior_rate is not None:
                change_1yr = latest_rate - prior_rate

        metadata.update(
            zip=zip_code or latest.get("zip"),
            total_addresses=parse_number(latest.get("total")),
            vacant_addresses=parse_number(latest.get("vacant")),
            occupied_addresses=parse_number(latest.get("occupied")),
            change_1yr=change_1yr,
        )

    if label is None:
        label = f"{base_label} - ZIP {metadata['zip']}" if metadata["zip"] else base_label
    return build_series(label, upstream_id, rows, unit="%", metadata=metadata)
