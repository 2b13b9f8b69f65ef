"""
Economic statistics adapter (BEA Regional and FRED observations).

BEA::

    {"BEAAPI": {"Results": {"Data": [{"TimePeriod": "2022",
                                      "DataValue": "1,234,567",
                                      "CL_UNIT": "Thousands of dollars"}]}}}

FRED::

    {"observations": [{"date": "2024-03-01", "value": "3.9"}]}
"""

from typing import Any

from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import NormalizedSeries
from siteintel.services.errors import NormalizationError


def _bea_rows(payload: dict[str, Any], upstream_id: str) -> tuple[list, str]:
    beaapi = payload["BEAAPI"]
    results = beaapi.get("Results") if isinstance(beaapi, dict) else None
    # BEA occasionally wraps Results in a single-element list
    if isinstance(results, list):
        results = results[0] if results else {}
    if not isinstance(results, dict) or not isinstance(results.get("Data"), list):
        raise NormalizationError("BEA payload has no Results.Data list", service_id=upstream_id)

    rows = []
    unit = ""
    for item in results["Data"]:
        if not isinstance(item, dict) or not item.get("TimePeriod"):
            continue
        unit = unit or item.get("CL_UNIT", "")
        rows.append((str(item["TimePeriod"]), parse_number(item.get("DataValue"))))
    return rows, unit


def _fred_rows(payload: dict[str, Any], upstream_id: str, frequency: str) -> list:
    observations = payload["observations"]
    if not isinstance(observations, list):
        raise NormalizationError("FRED observations is not a list", service_id=upstream_id)

    width = 4 if frequency == "a" else 7
    rows = []
    for obs in observations:
        if not isinstance(obs, dict) or not obs.get("date"):
            continue
        rows.append((str(obs["date"])[:width], parse_number(obs.get("value"))))
    return rows


def normalize_economic(
    payload: Any,
    *,
    upstream_id: str = "bea",
    label: str = "Economic indicator",
    unit: str | None = None,
    frequency: str = "m",
    **_: Any,
) -> NormalizedSeries:
    """Convert a BEA or FRED response to a normalized series."""
    if not isinstance(payload, dict):
        raise NormalizationError("Economic payload is not an object", service_id=upstream_id)

    if "BEAAPI" in payload:
        rows, bea_unit = _bea_rows(payload, upstream_id)
        unit = unit if unit is not None else bea_unit
    elif "observations" in payload:
        rows = _fred_rows(payload, upstream_id, frequency)
    else:
        raise NormalizationError(
            "Unrecognized economic payload (expected BEAAPI or observations)",
            service_id=upstream_id,
        )

    return build_series(label, upstream_id, rows, unit=unit or "")
