"""
Normalizers - one adapter per upstream family.

Each adapter is a pure function from a raw upstream payload to a
NormalizedSeries (or, for places and demographic snapshots, a profile).
"""

from enum import Enum
from typing import Any, Callable

from siteintel.normalize.climate import normalize_climate
from siteintel.normalize.crime import normalize_crime
from siteintel.normalize.demographics import (
    normalize_demographic_profile,
    normalize_demographics,
)
from siteintel.normalize.economic import normalize_economic
from siteintel.normalize.housing import normalize_housing
from siteintel.normalize.labor import normalize_labor
from siteintel.normalize.metrics import DerivedMetrics, compute_derived
from siteintel.normalize.places import normalize_places
from siteintel.normalize.series import build_series, parse_number
from siteintel.normalize.types import (
    AmenityProfile,
    CategoryCount,
    DemographicProfile,
    NormalizedSeries,
    Place,
    SeriesPoint,
)


class Family(str, Enum):
    """Upstream families sharing one adapter."""

    LABOR = "labor"
    CRIME = "crime"
    ECONOMIC = "economic"
    CLIMATE = "climate"
    PLACES = "places"
    DEMOGRAPHICS = "demographics"
    HOUSING = "housing"


def _normalize_demographic_payload(payload: Any, **context: Any):
    # A bare table is a snapshot; a year -> table mapping is a series
    if isinstance(payload, list):
        return normalize_demographic_profile(payload, **context)
    return normalize_demographics(payload, **context)


ADAPTERS: dict[Family, Callable[..., Any]] = {
    Family.LABOR: normalize_labor,
    Family.CRIME: normalize_crime,
    Family.ECONOMIC: normalize_economic,
    Family.CLIMATE: normalize_climate,
    Family.PLACES: normalize_places,
    Family.DEMOGRAPHICS: _normalize_demographic_payload,
    Family.HOUSING: normalize_housing,
}

Normalized = NormalizedSeries | AmenityProfile | DemographicProfile


def normalize(payload: Any, family: Family | str, **context: Any) -> Normalized:
    """Normalize a raw payload with the adapter registered for ``family``."""
    return ADAPTERS[Family(family)](payload, **context)


__all__ = [
    "Family",
    "normalize",
    "Normalized",
    "NormalizedSeries",
    "SeriesPoint",
    "DerivedMetrics",
    "AmenityProfile",
    "CategoryCount",
    "Place",
    "DemographicProfile",
    "compute_derived",
    "build_series",
    "parse_number",
]
