"""
Normalized result types using Pydantic models.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from siteintel.normalize.metrics import DerivedMetrics, compute_derived


class SeriesPoint(BaseModel):
    """One period of a normalized series."""

    model_config = ConfigDict(frozen=True)

    period_key: str  # "2024", "2024-03" or "2024-Q1"
    value: float | None = None


class NormalizedSeries(BaseModel):
    """Canonical time series produced by every time-series adapter."""

    model_config = ConfigDict(frozen=True)

    label: str
    upstream_id: str
    unit: str = ""
    points: list[SeriesPoint] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("points")
    @classmethod
    def _sorted_unique(cls, points: list[SeriesPoint]) -> list[SeriesPoint]:
        ordered = sorted(points, key=lambda p: p.period_key)
        keys = [p.period_key for p in ordered]
        if len(set(keys)) != len(keys):
            raise ValueError("period_key values must be unique")
        return ordered

    @computed_field  # type: ignore[prop-decorator]
    @property
    def derived(self) -> DerivedMetrics:
        return compute_derived([(p.period_key, p.value) for p in self.points])

    def values(self) -> dict[str, float | None]:
        return {p.period_key: p.value for p in self.points}


class CategoryCount(BaseModel):
    """Places found in one category and that category's weight."""

    id: str
    name: str
    count: int
    weight: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def score(self) -> float:
        return self.count * self.weight


class Place(BaseModel):
    """A single point of interest."""

    fsq_id: str | None = None
    name: str | None = None
    category_id: str | None = None
    category: str | None = None
    distance_m: float | None = None
    lat: float | None = None
    lng: float | None = None
    address: str | None = None


class AmenityProfile(BaseModel):
    """Category counts and weighted amenity score around a location."""

    model_config = ConfigDict(frozen=True)

    label: str
    upstream_id: str
    categories: list[CategoryCount] = Field(default_factory=list)
    places: list[Place] = Field(default_factory=list)
    total_places: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def amenity_score(self) -> float:
        return round(sum(c.count * c.weight for c in self.categories), 1)


class DemographicProfile(BaseModel):
    """ACS snapshot for one geography with derived ratios."""

    model_config = ConfigDict(frozen=True)

    label: str
    upstream_id: str
    year: str | None = None
    geography: dict[str, str] = Field(default_factory=dict)
    variables: dict[str, float | None] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def derived(self) -> dict[str, float | None]:
        v = self.variables

        def pct(part: str | float | None, whole: str) -> float | None:
            numerator = v.get(part) if isinstance(part, str) else part
            denominator = v.get(whole)
            if numerator is None or not denominator:
                return None
            return numerator / denominator * 100

        owner = v.get("owner_occupied_units")
        renter = v.get("renter_occupied_units")
        occupied = owner + renter if owner is not None and renter is not None else None
        housing = v.get("total_housing_units")
        vacant = housing - occupied if housing is not None and occupied is not None else None

        return {
            "percent_male": pct("male_population", "total_population"),
            "percent_female": pct("female_population", "total_population"),
            "percent_bachelor_plus": pct(
                "bachelor_degree_or_higher", "total_population"
            ),
            "unemployment_rate": pct("unemployed", "labor_force"),
            "homeownership_rate": (
                owner / occupied * 100 if owner is not None and occupied else None
            ),
            "vacancy_rate": pct(vacant, "total_housing_units"),
        }
