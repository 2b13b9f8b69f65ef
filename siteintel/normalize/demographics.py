"""
Demographics adapter (Census ACS 5-year estimates).

The Census API answers with a header row followed by data rows::

    [["B19013_001E", "state", "county"], ["65432", "37", "119"]]

A multi-year series arrives as ``{"2019": table, "2020": table, ...}``.
"""

from typing import Any

from siteintel.normalize.config import ACS_VARIABLES, CENSUS_NULL_SENTINELS
from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import DemographicProfile, NormalizedSeries
from siteintel.services.errors import NormalizationError

GEOGRAPHY_COLUMNS = ("state", "county", "tract", "block group", "place", "zip code tabulation area")


def _acs_number(value: Any) -> float | None:
    number = parse_number(value)
    if number is None or number in CENSUS_NULL_SENTINELS:
        return None
    return number


def _first_row(table: Any, upstream_id: str) -> dict[str, Any]:
    if (
        not isinstance(table, list)
        or len(table) < 2
        or not isinstance(table[0], list)
        or not isinstance(table[1], list)
    ):
        raise NormalizationError(
            "Census table must be a header row followed by data rows",
            service_id=upstream_id,
        )
    return dict(zip(table[0], table[1]))


def normalize_demographics(
    payload: Any,
    *,
    upstream_id: str = "census",
    label: str | None = None,
    unit: str = "",
    variable: str = ACS_VARIABLES["median_household_income"],
    **_: Any,
) -> NormalizedSeries:
    """Convert per-year ACS tables to an annual series for one variable."""
    if not isinstance(payload, dict):
        raise NormalizationError(
            "Census series payload must map year to table", service_id=upstream_id
        )

    rows = []
    for year, table in payload.items():
        if table is None:
            # Vintage not published for this geography
            continue
        row = _first_row(table, upstream_id)
        rows.append((str(year), _acs_number(row.get(variable))))

    if label is None:
        names = {code: name for name, code in ACS_VARIABLES.items()}
        label = names.get(variable, variable).replace("_", " ").capitalize()

    return build_series(label, upstream_id, rows, unit=unit, metadata={"variable": variable})


def normalize_demographic_profile(
    payload: Any,
    *,
    upstream_id: str = "census_profile",
    label: str = "ACS 5-year demographic profile",
    year: str | None = None,
    variables: dict[str, str] | None = None,
    **_: Any,
) -> DemographicProfile:
    """Convert a single ACS table to a named-variable profile."""
    row = _first_row(payload, upstream_id)
    wanted = variables or ACS_VARIABLES

    return DemographicProfile(
        label=label,
        upstream_id=upstream_id,
        year=year,
        geography={col: str(row[col]) for col in GEOGRAPHY_COLUMNS if col in row},
        variables={name: _acs_number(row.get(code)) for name, code in wanted.items()},
    )
