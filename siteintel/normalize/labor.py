"""
Labor statistics adapter (BLS public API v2 time series).

Payload shape::

    {"status": "REQUEST_SUCCEEDED",
     "Results": {"series": [{"seriesID": "...",
                             "data": [{"year": "2024", "period": "M03",
                                       "value": "4.1", ...}]}]}}
"""

import re
from typing import Any

from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import NormalizedSeries
from siteintel.services.errors import NormalizationError

MONTHLY_PERIOD = re.compile(r"^M(0[1-9]|1[0-2])$")


def normalize_labor(
    payload: Any,
    *,
    upstream_id: str = "bls",
    label: str = "Unemployment rate",
    unit: str = "%",
    **_: Any,
) -> NormalizedSeries:
    """Convert a BLS response to a monthly series keyed 'YYYY-MM'."""
    try:
        series_list = payload["Results"]["series"]
        series = series_list[0]
        data = series["data"]
    except (KeyError, IndexError, TypeError) as e:
        raise NormalizationError(
            f"BLS payload missing Results.series[0].data: {e!r}",
            service_id=upstream_id,
        ) from e

    if not isinstance(data, list):
        raise NormalizationError("BLS series data is not a list", service_id=upstream_id)

    rows = []
    for item in data:
        if not isinstance(item, dict):
            continue
        period = str(item.get("period", ""))
        year = str(item.get("year", ""))
        # M13 is the annual average, not a month
        if not MONTHLY_PERIOD.match(period) or not year.isdigit():
            continue
        rows.append((f"{year}-{period[1:]}", parse_number(item.get("value"))))

    return build_series(
        label,
        upstream_id,
        rows,
        unit=unit,
        metadata={"series_id": series.get("seriesID")},
    )
