"""
NOAA Climate Data Online (CDO) v2 upstream.

API Documentation: https://www.ncdc.noaa.gov/cdo-web/webservices/v2
Get API token at: https://www.ncdc.noaa.gov/cdo-web/token
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest
from siteintel.normalize import Family
from siteintel.services.errors import InvalidParamsError

# dataset -> period granularity of its observations
DATASETS: dict[str, str] = {
    "GSOM": "month",  # Global Summary of the Month
    "GSOY": "year",  # Global Summary of the Year
}

MAX_RESULTS = 1000


class NOAAUpstream(BaseUpstream):
    """Monthly or annual climate summaries for a location or station."""

    BASE_URL = "https://www.ncei.noaa.gov/cdo-web/api/v2"

    service_id = "noaa"
    family = Family.CLIMATE
    cache_ttl = timedelta(hours=6)
    defaults = {
        "dataset": "GSOM",
        "datatype": "TAVG",
        "start": "2023-01-01",
        "end": "2023-12-31",
    }

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        if not clean.get("location") and not clean.get("station"):
            raise InvalidParamsError(
                "location (e.g. FIPS:37119) or station required",
                service_id=self.service_id,
            )
        clean["dataset"] = clean["dataset"].upper()
        if clean["dataset"] not in DATASETS:
            raise InvalidParamsError(
                f"dataset must be one of {sorted(DATASETS)}", service_id=self.service_id
            )
        clean["datatype"] = clean["datatype"].upper()
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        query = {
            "datasetid": params["dataset"],
            "datatypeid": params["datatype"],
            "startdate": params["start"],
            "enddate": params["end"],
            "units": "metric",
            "limit": MAX_RESULTS,
        }
        if params.get("station"):
            query["stationid"] = params["station"]
        else:
            query["locationid"] = params["location"]

        return [
            UpstreamRequest(
                method="GET",
                url=f"{self.BASE_URL}/data",
                params=query,
                headers={"token": self.api_key},
            )
        ]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "upstream_id": self.service_id,
            "datatype": params["datatype"],
            "period": DATASETS[params["dataset"]],
        }
