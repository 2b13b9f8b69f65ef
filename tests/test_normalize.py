"""
Unit tests for siteintel/normalize

Covers derived metrics, value coercion and one adapter per upstream family.
"""

import pydantic
import pytest

from conftest import bls_payload
from siteintel.normalize import (
    Family,
    NormalizedSeries,
    SeriesPoint,
    compute_derived,
    normalize,
    parse_number,
)
from siteintel.normalize.climate import normalize_climate
from siteintel.normalize.crime import normalize_crime
from siteintel.normalize.demographics import (
    normalize_demographic_profile,
    normalize_demographics,
)
from siteintel.normalize.economic import normalize_economic
from siteintel.normalize.housing import normalize_housing
from siteintel.normalize.labor import normalize_labor
from siteintel.normalize.metrics import parse_period, years_between
from siteintel.normalize.places import normalize_places
from siteintel.services.errors import NormalizationError

# =============================================================================
# Derived metrics
# =============================================================================


class TestDerivedMetrics:
    def test_change_and_cagr(self):
        derived = compute_derived([("2022", 100.0), ("2023", 110.0), ("2024", 121.0)])
        assert derived.latest == 121.0
        assert derived.latest_period == "2024"
        assert derived.change_absolute == pytest.approx(11.0)
        assert derived.change_percent == pytest.approx(10.0)
        assert derived.cagr == pytest.approx(10.0)

    def test_fewer_than_two_points_all_null(self):
        for points in ([], [("2024", 5.0)]):
            derived = compute_derived(points)
            assert derived.model_dump() == {
                "latest": None,
                "latest_period": None,
                "change_absolute": None,
                "change_percent": None,
                "cagr": None,
            }

    def test_zero_prior_guards_percent(self):
        derived = compute_derived([("2023", 0.0), ("2024", 5.0)])
        assert derived.change_absolute == 5.0
        assert derived.change_percent is None
        assert derived.cagr is None

    def test_zero_is_a_value(self):
        derived = compute_derived([("2023", 4.0), ("2024", 0.0)])
        assert derived.latest == 0.0
        assert derived.change_absolute == -4.0
        assert derived.change_percent == pytest.approx(-100.0)

    def test_null_prior_excluded_from_change(self):
        derived = compute_derived([("2022", 100.0), ("2023", None), ("2024", 121.0)])
        assert derived.change_absolute is None
        assert derived.change_percent is None
        # First -> latest window does not touch the null
        assert derived.cagr == pytest.approx(10.0)

    def test_null_first_excluded_from_cagr(self):
        derived = compute_derived([("2022", None), ("2023", 110.0), ("2024", 121.0)])
        assert derived.cagr is None
        assert derived.change_percent == pytest.approx(10.0)

    def test_monthly_cagr_uses_fractional_years(self):
        assert years_between("2023-01", "2024-07") == pytest.approx(1.5)
        derived = compute_derived([("2023-01", 100.0), ("2024-01", 110.0)])
        assert derived.cagr == pytest.approx(10.0)

    def test_quarterly_keys(self):
        assert parse_period("2024-Q1") == (2024, 1)
        assert parse_period("2024-Q4") == (2024, 10)
        assert years_between("2023-Q2", "2024-Q4") == pytest.approx(1.5)
        derived = compute_derived([("2022-Q3", 100.0), ("2023-Q3", 105.0), ("2024-Q3", 121.0)])
        assert derived.cagr == pytest.approx(10.0)


class TestParseNumber:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1,234.5", 1234.5),
            (" 42 ", 42.0),
            ("0", 0.0),
            (0, 0.0),
            (3.5, 3.5),
            ("-2.1", -2.1),
        ],
    )
    def test_numbers(self, raw, expected):
        assert parse_number(raw) == expected

    @pytest.mark.parametrize(
        "raw", [None, "", "(NA)", "(D)", ".", "-", "n/a?", True, float("nan"), {}]
    )
    def test_missing(self, raw):
        assert parse_number(raw) is None


class TestNormalizedSeries:
    def test_points_sorted(self):
        series = NormalizedSeries(
            label="x",
            upstream_id="t",
            points=[SeriesPoint(period_key="2024", value=2), SeriesPoint(period_key="2023", value=1)],
        )
        assert [p.period_key for p in series.points] == ["2023", "2024"]

    def test_duplicate_periods_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            NormalizedSeries(
                label="x",
                upstream_id="t",
                points=[SeriesPoint(period_key="2024", value=1), SeriesPoint(period_key="2024", value=2)],
            )

    def test_derived_serialized(self):
        series = NormalizedSeries(
            label="x",
            upstream_id="t",
            points=[SeriesPoint(period_key="2023", value=1), SeriesPoint(period_key="2024", value=2)],
        )
        dumped = series.model_dump(mode="json")
        assert dumped["derived"]["change_absolute"] == 1.0
        assert dumped["points"][0] == {"period_key": "2023", "value": 1.0}


# =============================================================================
# Labor (BLS)
# =============================================================================


class TestLabor:
    def test_monthly_series(self, bls_ok):
        series = normalize_labor(bls_ok)
        assert series.upstream_id == "bls"
        assert series.unit == "%"
        # M13 annual average dropped
        assert series.values() == {"2024-01": 4.2, "2024-02": 4.0, "2024-03": 4.4}
        assert series.metadata["series_id"] == "LAUCN371190000000003"
        assert series.derived.change_absolute == pytest.approx(0.4)

    def test_na_value_is_null_and_excluded(self):
        payload = bls_payload(
            ("2024", "M03", "(NA)"),
            ("2024", "M02", "4.0"),
            ("2024", "M01", "4.2"),
        )
        series = normalize_labor(payload)
        assert series.values()["2024-03"] is None
        assert series.derived.latest is None
        assert series.derived.change_percent is None
        assert series.derived.cagr is None

    def test_idempotent(self, bls_ok):
        assert normalize_labor(bls_ok) == normalize_labor(bls_ok)
        assert normalize(bls_ok, Family.LABOR) == normalize(bls_ok, "labor")

    @pytest.mark.parametrize(
        "payload",
        [{}, {"Results": {}}, {"Results": {"series": []}}, {"Results": {"series": [{"data": "x"}]}}, None],
    )
    def test_malformed(self, payload):
        with pytest.raises(NormalizationError):
            normalize_labor(payload)


# =============================================================================
# Crime (FBI)
# =============================================================================


class TestCrime:
    payload = {
        "results": [
            {"data_year": 2022, "population": 1_000_000, "violent_crime": 4400},
            {"year": 2021, "population": 1_000_000, "violent_crime": 4000},
            {"year": "n/a", "violent_crime": 1},
        ]
    }

    def test_rate_computed_from_counts(self):
        series = normalize_crime(self.payload, offense="violent-crime", measure="rate")
        assert series.values() == {"2021": pytest.approx(400.0), "2022": pytest.approx(440.0)}
        assert series.unit == "per 100k"
        assert series.label == "Violent Crime rate"
        assert series.derived.change_percent == pytest.approx(10.0)
        assert series.derived.cagr == pytest.approx(10.0)

    def test_reported_rate_preferred(self):
        payload = {"results": [{"year": 2022, "population": 10, "burglary": 5, "burglary_rate": 321.5}]}
        series = normalize_crime(payload, offense="burglary")
        assert series.values() == {"2022": 321.5}

    def test_counts(self):
        series = normalize_crime(self.payload, measure="count")
        assert series.values() == {"2021": 4000.0, "2022": 4400.0}
        assert series.unit == "incidents"

    def test_malformed(self):
        with pytest.raises(NormalizationError):
            normalize_crime({"data": []})
        with pytest.raises(NormalizationError):
            normalize_crime(self.payload, measure="ratio")


# =============================================================================
# Economic (BEA / FRED)
# =============================================================================


class TestEconomic:
    def test_bea_commas_and_unit(self):
        payload = {
            "BEAAPI": {
                "Results": {
                    "Data": [
                        {"TimePeriod": "2022", "DataValue": "1,210,000", "CL_UNIT": "Thousands of dollars"},
                        {"TimePeriod": "2020", "DataValue": "1,000,000", "CL_UNIT": "Thousands of dollars"},
                        {"TimePeriod": "2021", "DataValue": "(NA)", "CL_UNIT": "Thousands of dollars"},
                    ]
                }
            }
        }
        series = normalize_economic(payload, upstream_id="bea", label="MSA GDP")
        assert series.unit == "Thousands of dollars"
        assert series.values() == {"2020": 1_000_000.0, "2021": None, "2022": 1_210_000.0}
        assert series.derived.cagr == pytest.approx(10.0)
        assert series.derived.change_percent is None

    def test_bea_results_list(self):
        payload = {"BEAAPI": {"Results": [{"Data": [{"TimePeriod": "2022", "DataValue": "5"}]}]}}
        assert normalize_economic(payload).values() == {"2022": 5.0}

    def test_bea_error_shape(self):
        with pytest.raises(NormalizationError):
            normalize_economic({"BEAAPI": {"Results": {"Error": {"APIErrorCode": "1"}}}})

    def test_fred_monthly(self):
        payload = {
            "observations": [
                {"date": "2024-01-01", "value": "3.7"},
                {"date": "2024-02-01", "value": "."},
                {"date": "2024-03-01", "value": "3.9"},
            ]
        }
        series = normalize_economic(payload, upstream_id="fred", label="Unemployment Rate", unit="%")
        assert series.values() == {"2024-01": 3.7, "2024-02": None, "2024-03": 3.9}
        assert series.unit == "%"

    def test_fred_annual(self):
        payload = {"observations": [{"date": "2022-01-01", "value": "100"}, {"date": "2023-01-01", "value": "105"}]}
        series = normalize_economic(payload, upstream_id="fred", frequency="a")
        assert list(series.values()) == ["2022", "2023"]

    def test_unrecognized(self):
        with pytest.raises(NormalizationError):
            normalize_economic({"rows": []})


# =============================================================================
# Climate (NOAA)
# =============================================================================


class TestClimate:
    payload = {
        "results": [
            {"date": "2024-01-01T00:00:00", "datatype": "TAVG", "station": "GHCND:A", "value": 5.0},
            {"date": "2024-01-01T00:00:00", "datatype": "TAVG", "station": "GHCND:B", "value": 7.0},
            {"date": "2024-02-01T00:00:00", "datatype": "TAVG", "station": "GHCND:A", "value": None},
            {"date": "2024-01-01T00:00:00", "datatype": "PRCP", "station": "GHCND:A", "value": 80.2},
        ]
    }

    def test_station_average(self):
        series = normalize_climate(self.payload, datatype="TAVG")
        assert series.values() == {"2024-01": 6.0, "2024-02": None}
        assert series.label == "Average temperature"
        assert series.unit == "°C"
        assert series.metadata["stations"] == ["GHCND:A", "GHCND:B"]

    def test_other_datatype(self):
        series = normalize_climate(self.payload, datatype="PRCP")
        assert series.values() == {"2024-01": 80.2}
        assert series.unit == "mm"

    def test_annual_period(self):
        payload = {"results": [{"date": "2023-01-01T00:00:00", "datatype": "TAVG", "value": 15.1}]}
        assert normalize_climate(payload, period="year").values() == {"2023": 15.1}

    def test_empty_response_is_empty_series(self):
        series = normalize_climate({})
        assert series.points == []
        assert series.derived.latest is None

    def test_malformed(self):
        with pytest.raises(NormalizationError):
            normalize_climate({"results": "nope"})


# =============================================================================
# Places (Foursquare)
# =============================================================================


def place(fsq_id: str, category_id: int | None, name: str = "Somewhere") -> dict:
    item = {
        "fsq_id": fsq_id,
        "name": name,
        "distance": 120,
        "geocodes": {"main": {"latitude": 35.78, "longitude": -78.64}},
        "location": {"formatted_address": "1 Main St"},
    }
    if category_id is not None:
        item["categories"] = [{"id": category_id, "name": f"cat-{category_id}"}]
    return item


class TestPlaces:
    def test_weighted_score(self):
        payload = {
            "results": [
                place("a", 17069),
                place("b", 17069),
                place("c", 13032),
                place("d", 99999),
            ]
        }
        profile = normalize_places(payload)
        # 2 x grocery (2.0) + coffee (1.5) + unknown (0.5)
        assert profile.amenity_score == 6.0
        assert profile.total_places == 4
        assert [c.id for c in profile.categories] == ["17069", "13032", "99999"]
        assert profile.categories[0].count == 2
        assert profile.categories[2].weight == 0.5
        assert profile.places[0].lat == 35.78

    def test_uncategorized_places(self):
        profile = normalize_places({"results": [place("a", None)]})
        assert profile.categories[0].id == "other"
        assert profile.amenity_score == 0.5

    def test_places_capped(self):
        payload = {"results": [place(str(i), 13000) for i in range(60)]}
        profile = normalize_places(payload)
        assert profile.total_places == 60
        assert len(profile.places) == 50
        assert profile.amenity_score == 60.0

    def test_custom_weights(self):
        profile = normalize_places({"results": [place("a", 1)]}, weights={"1": ("Thing", 3.0)})
        assert profile.amenity_score == 3.0

    def test_empty(self):
        profile = normalize_places({"results": []})
        assert profile.amenity_score == 0.0
        assert profile.categories == []

    def test_malformed(self):
        with pytest.raises(NormalizationError):
            normalize(["not", "a", "dict"], Family.PLACES)


# =============================================================================
# Demographics (Census ACS)
# =============================================================================


class TestDemographics:
    def test_series_across_vintages(self):
        header = ["B19013_001E", "state", "county"]
        payload = {
            "2019": [header, ["60000", "37", "119"]],
            "2020": None,
            "2021": [header, ["66150", "37", "119"]],
        }
        series = normalize_demographics(payload, variable="B19013_001E")
        assert series.values() == {"2019": 60000.0, "2021": 66150.0}
        assert series.label == "Median household income"
        assert series.derived.cagr == pytest.approx(5.0)

    def test_sentinel_is_null(self):
        payload = {"2022": [["B25077_001E"], ["-666666666"]]}
        series = normalize_demographics(payload, variable="B25077_001E")
        assert series.values() == {"2022": None}

    def test_profile(self):
        table = [
            [
                "B01003_001E", "B01001_002E", "B01001_026E", "B25003_002E",
                "B25003_003E", "B25001_001E", "B23025_002E", "B23025_005E",
                "B19013_001E", "state", "county",
            ],
            ["1000", "480", "520", "300", "100", "500", "600", "30", "-666666666", "37", "119"],
        ]
        profile = normalize_demographic_profile(table, year="2023")
        assert profile.year == "2023"
        assert profile.geography == {"state": "37", "county": "119"}
        assert profile.variables["total_population"] == 1000.0
        assert profile.variables["median_household_income"] is None
        assert profile.variables["median_age"] is None

        derived = profile.derived
        assert derived["percent_male"] == pytest.approx(48.0)
        assert derived["unemployment_rate"] == pytest.approx(5.0)
        assert derived["homeownership_rate"] == pytest.approx(75.0)
        assert derived["vacancy_rate"] == pytest.approx(20.0)
        assert derived["percent_bachelor_plus"] is None

    def test_dispatch_by_shape(self):
        table = [["B01003_001E", "state"], ["10", "37"]]
        assert normalize(table, Family.DEMOGRAPHICS, year="2023").variables["total_population"] == 10.0
        series = normalize({"2023": table}, Family.DEMOGRAPHICS, variable="B01003_001E")
        assert series.values() == {"2023": 10.0}

    @pytest.mark.parametrize("payload", [[], [["only header"]], {"2023": {"a": 1}}])
    def test_malformed(self, payload):
        with pytest.raises(NormalizationError):
            normalize(payload, Family.DEMOGRAPHICS)


# =============================================================================
# Housing (HUD USPS)
# =============================================================================


def hud_row(year, quarter, total, vacant, occupied=None):
    return {
        "year": year,
        "quarter": quarter,
        "zip": "28202",
        "total": total,
        "vacant": vacant,
        "occupied": occupied if occupied is not None else total - vacant,
        "no_stat": 0,
    }


class TestHousing:
    def test_vacancy_series(self):
        payload = {
            "data": [
                hud_row("2024", "2", 1000, 60),
                hud_row("2023", "2", 1000, 40),
                hud_row("2024", "1", 1000, 50),
            ]
        }
        series = normalize_housing(payload, zip_code="28202")
        assert series.values() == {
            "2023-Q2": pytest.approx(4.0),
            "2024-Q1": pytest.approx(5.0),
            "2024-Q2": pytest.approx(6.0),
        }
        assert series.label == "USPS Vacancy Rate - ZIP 28202"
        assert series.unit == "%"
        assert series.metadata["total_addresses"] == 1000.0
        assert series.metadata["vacant_addresses"] == 60.0
        assert series.metadata["change_1yr"] == pytest.approx(2.0)
        assert series.derived.latest_period == "2024-Q2"
        assert series.derived.change_absolute == pytest.approx(1.0)

    def test_lookback_keeps_latest_quarters(self):
        rows = [hud_row(str(y), str(q), 100, q) for y in (2022, 2023, 2024) for q in (1, 2, 3, 4)]
        series = normalize_housing({"data": rows}, lookback_quarters=4)
        assert list(series.values()) == ["2024-Q1", "2024-Q2", "2024-Q3", "2024-Q4"]
        # Year-ago quarter sits outside the kept window
        assert series.metadata["change_1yr"] == pytest.approx(0.0)

    def test_occupancy_and_nested_results(self):
        payload = {"data": {"results": [hud_row(2024, 3, 200, 10, occupied=180)]}}
        series = normalize_housing(payload, measure="occupancy_rate")
        assert series.values() == {"2024-Q3": pytest.approx(90.0)}
        assert series.label == "USPS Occupancy Rate - ZIP 28202"
        assert series.metadata["change_1yr"] is None

    def test_zero_total_is_null(self):
        series = normalize_housing({"data": [hud_row("2024", "1", 0, 0)]})
        assert series.values() == {"2024-Q1": None}

    def test_bad_rows_skipped(self):
        payload = {"data": [{"year": "2024", "quarter": "5"}, "junk", hud_row("2024", "Q1", 10, 1)]}
        assert list(normalize_housing(payload).values()) == ["2024-Q1"]

    @pytest.mark.parametrize("payload", [{}, {"data": "none"}, [], None])
    def test_malformed(self, payload):
        with pytest.raises(NormalizationError):
            normalize(payload, Family.HOUSING)
