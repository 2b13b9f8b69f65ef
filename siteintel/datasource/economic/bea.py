"""
BEA Regional data upstream (GDP by MSA, personal income by county).

API Documentation: https://apps.bea.gov/api/_pdf/bea_web_service_api_user_guide.pdf
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest, pad
from siteintel.normalize import Family
from siteintel.services.errors import InvalidParamsError, ServiceError

# geo -> (table, label)
REGIONAL_TABLES: dict[str, tuple[str, str]] = {
    "msa": ("CAGDP2", "MSA GDP"),
    "county": ("CAINC1", "County personal income"),
}


class BEAUpstream(BaseUpstream):
    """Annual regional series from the BEA Regional dataset."""

    BASE_URL = "https://apps.bea.gov/api/data"

    service_id = "bea"
    family = Family.ECONOMIC
    cache_ttl = timedelta(hours=12)
    defaults = {"geo": "msa", "start_year": "2015", "end_year": "2023"}

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        geo = clean["geo"]
        if geo not in REGIONAL_TABLES:
            raise InvalidParamsError("geo must be 'msa' or 'county'", service_id=self.service_id)
        if geo == "msa" and not clean.get("msa"):
            raise InvalidParamsError(
                "msa (CBSA code) required for geo=msa", service_id=self.service_id
            )
        if geo == "county":
            if not clean.get("state") or not clean.get("county"):
                raise InvalidParamsError(
                    "state and county required for geo=county", service_id=self.service_id
                )
            clean["state"] = pad(clean["state"], 2)
            clean["county"] = pad(clean["county"], 3)

        try:
            start, end = int(clean["start_year"]), int(clean["end_year"])
        except ValueError as e:
            raise InvalidParamsError(
                "start_year and end_year must be years", service_id=self.service_id
            ) from e
        if start > end:
            raise InvalidParamsError(
                "start_year must not be after end_year", service_id=self.service_id
            )
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        table, _ = REGIONAL_TABLES[params["geo"]]
        if params["geo"] == "msa":
            geo_fips = f"MSA{params['msa']}"
        else:
            geo_fips = f"{params['state']}{params['county']}"

        years = ",".join(
            str(y) for y in range(int(params["start_year"]), int(params["end_year"]) + 1)
        )
        return [
            UpstreamRequest(
                method="GET",
                url=self.BASE_URL,
                params={
                    "UserID": self.api_key,
                    "Method": "GetData",
                    "DataSetName": "Regional",
                    "TableName": table,
                    "LineCode": "1",
                    "GeoFIPS": geo_fips,
                    "Year": years,
                    "ResultFormat": "JSON",
                },
            )
        ]

    def check_payload(self, payload: Any) -> None:
        api = payload.get("BEAAPI") if isinstance(payload, dict) else None
        if not isinstance(api, dict):
            return
        results = api.get("Results")
        if isinstance(results, dict) and "Error" in results:
            error = results["Error"]
            detail = error.get("APIErrorDescription", error) if isinstance(error, dict) else error
            raise ServiceError(f"BEA: {detail}", service_id=self.service_id)

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        _, label = REGIONAL_TABLES[params["geo"]]
        return {"upstream_id": self.service_id, "label": label, "unit": None}
