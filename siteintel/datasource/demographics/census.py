"""
Census Bureau ACS 5-year upstreams.

API Documentation: https://www.census.gov/data/developers/data-sets/acs-5year.html
Get API key at: https://api.census.gov/data/key_signup.html

Two shapes are offered:
- ``census``: one variable across several vintages (one request per year)
- ``census_profile``: every profile variable for one vintage
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest, pad
from siteintel.normalize import Family
from siteintel.normalize.config import ACS_VARIABLES
from siteintel.services.errors import InvalidParamsError

# ACS 5-year vintages are published through this year
LATEST_VINTAGE = 2023
FIRST_VINTAGE = 2009


def _geography(params: dict[str, Any]) -> dict[str, str]:
    """Census 'for'/'in' clauses for a county or tract."""
    if params.get("tract"):
        return {
            "for": f"tract:{params['tract']}",
            "in": f"state:{params['state']} county:{params['county']}",
        }
    return {"for": f"county:{params['county']}", "in": f"state:{params['state']}"}


class _CensusBase(BaseUpstream):
    BASE_URL = "https://api.census.gov/data"

    family = Family.DEMOGRAPHICS
    cache_ttl = timedelta(hours=12)
    required_params = ("state", "county")

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        clean["state"] = pad(clean["state"], 2)
        clean["county"] = pad(clean["county"], 3)
        if clean.get("tract"):
            clean["tract"] = pad(clean["tract"], 6)
        return clean

    def _check_vintage(self, year: str) -> int:
        try:
            vintage = int(year)
        except ValueError as e:
            raise InvalidParamsError(f"Invalid year '{year}'", service_id=self.service_id) from e
        if not FIRST_VINTAGE <= vintage <= LATEST_VINTAGE:
            raise InvalidParamsError(
                f"ACS 5-year data covers {FIRST_VINTAGE}-{LATEST_VINTAGE}",
                service_id=self.service_id,
            )
        return vintage

    def _request(self, year: int, variables: str, params: dict[str, Any]) -> UpstreamRequest:
        query = {"get": variables, **_geography(params)}
        if self.api_key:
            query["key"] = self.api_key
        return UpstreamRequest(
            method="GET",
            url=f"{self.BASE_URL}/{year}/acs/acs5",
            params=query,
            tag=str(year),
        )


class CensusSeriesUpstream(_CensusBase):
    """One ACS variable across a range of vintages."""

    service_id = "census"
    defaults = {
        "variable": ACS_VARIABLES["median_household_income"],
        "start_year": "2019",
        "end_year": str(LATEST_VINTAGE),
    }

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        # Friendly names are accepted in place of ACS codes
        clean["variable"] = ACS_VARIABLES.get(clean["variable"], clean["variable"]).upper()
        start = self._check_vintage(clean["start_year"])
        end = self._check_vintage(clean["end_year"])
        if start > end:
            raise InvalidParamsError(
                "start_year must not be after end_year", service_id=self.service_id
            )
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        return [
            self._request(year, params["variable"], params)
            for year in range(int(params["start_year"]), int(params["end_year"]) + 1)
        ]

    def combine(self, requests: list[UpstreamRequest], payloads: list[Any]) -> Any:
        return {req.tag: payload for req, payload in zip(requests, payloads)}

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"upstream_id": self.service_id, "variable": params["variable"]}


class CensusProfileUpstream(_CensusBase):
    """Demographic profile for one county or tract and one vintage."""

    service_id = "census_profile"
    label = "ACS 5-year demographic profile"
    defaults = {"year": str(LATEST_VINTAGE)}

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        self._check_vintage(clean["year"])
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        variables = ",".join(sorted(set(ACS_VARIABLES.values())))
        return [self._request(int(params["year"]), variables, params)]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"upstream_id": self.service_id, "label": self.label, "year": params["year"]}
