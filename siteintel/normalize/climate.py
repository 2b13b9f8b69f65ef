"""
Climate statistics adapter (NOAA Climate Data Online v2 ``/data``).

Payload shape::

    {"metadata": {"resultset": {"offset": 1, "count": 24, "limit": 1000}},
     "results": [{"date": "2024-01-01T00:00:00", "datatype": "TAVG",
                  "station": "GHCND:USW00013881", "value": 7.4}]}

NOAA answers ``{}`` when a query matches nothing; that is an empty series,
not an error.
"""

from collections import defaultdict
from typing import Any

from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import NormalizedSeries
from siteintel.services.errors import NormalizationError

DATATYPE_LABELS: dict[str, tuple[str, str]] = {
    "TAVG": ("Average temperature", "°C"),
    "TMAX": ("Average maximum temperature", "°C"),
    "TMIN": ("Average minimum temperature", "°C"),
    "PRCP": ("Total precipitation", "mm"),
    "SNOW": ("Total snowfall", "mm"),
}


def normalize_climate(
    payload: Any,
    *,
    upstream_id: str = "noaa",
    label: str | None = None,
    unit: str | None = None,
    datatype: str = "TAVG",
    period: str = "month",
    **_: Any,
) -> NormalizedSeries:
    """
    Convert NOAA observations to a series for one datatype.

    Values reported by several stations for the same period are averaged.
    """
    if not isinstance(payload, dict):
        raise NormalizationError("NOAA payload is not an object", service_id=upstream_id)

    results = payload.get("results", [])
    if not isinstance(results, list):
        raise NormalizationError("NOAA results is not a list", service_id=upstream_id)

    width = 4 if period == "year" else 7
    by_period: dict[str, list[float]] = defaultdict(list)
    seen: set[str] = set()
    stations: set[str] = set()
    for item in results:
        if not isinstance(item, dict) or item.get("datatype") != datatype:
            continue
        date = str(item.get("date", ""))
        if len(date) < width:
            continue
        key = date[:width]
        seen.add(key)
        value = parse_number(item.get("value"))
        if value is not None:
            by_period[key].append(value)
        if item.get("station"):
            stations.add(item["station"])

    rows = [
        (key, sum(by_period[key]) / len(by_period[key]) if by_period[key] else None)
        for key in seen
    ]

    default_label, default_unit = DATATYPE_LABELS.get(datatype, (datatype, ""))
    return build_series(
        label or default_label,
        upstream_id,
        rows,
        unit=unit if unit is not None else default_unit,
        metadata={"datatype": datatype, "stations": sorted(stations)},
    )
