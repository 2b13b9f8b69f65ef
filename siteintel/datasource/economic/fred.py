"""
FRED API upstream for Federal Reserve economic series.

API Documentation: https://fred.stlouisfed.org/docs/api/fred/
Get API key at: https://fred.stlouisfed.org/docs/api/api_key.html
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest
from siteintel.normalize import Family
from siteintel.services.errors import InvalidParamsError

# Series worth naming in the UI
SERIES_LABELS: dict[str, tuple[str, str]] = {
    "UNRATE": ("Unemployment Rate", "%"),
    "MORTGAGE30US": ("30-Year Fixed Mortgage Rate", "%"),
    "CPIAUCSL": ("Consumer Price Index", "index"),
    "HOUST": ("Housing Starts", "thousands of units"),
    "CSUSHPISA": ("Case-Shiller U.S. Home Price Index", "index"),
    "GDP": ("Gross Domestic Product", "billions of dollars"),
    "FEDFUNDS": ("Fed Funds Rate", "%"),
}

FREQUENCIES = ("m", "q", "a")


class FREDUpstream(BaseUpstream):
    """Observations for one FRED series, aggregated to a frequency."""

    BASE_URL = "https://api.stlouisfed.org/fred"

    service_id = "fred"
    family = Family.ECONOMIC
    cache_ttl = timedelta(hours=1)
    required_params = ("series_id",)
    defaults = {"frequency": "m", "observation_start": "2015-01-01"}

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        clean["series_id"] = clean["series_id"].upper()
        if clean["frequency"] not in FREQUENCIES:
            raise InvalidParamsError(
                f"frequency must be one of {FREQUENCIES}", service_id=self.service_id
            )
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        return [
            UpstreamRequest(
                method="GET",
                url=f"{self.BASE_URL}/series/observations",
                params={
                    "series_id": params["series_id"],
                    "api_key": self.api_key,
                    "file_type": "json",
                    "frequency": params["frequency"],
                    "observation_start": params["observation_start"],
                    "sort_order": "asc",
                },
            )
        ]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        label, unit = SERIES_LABELS.get(params["series_id"], (params["series_id"], ""))
        return {
            "upstream_id": self.service_id,
            "label": label,
            "unit": unit,
            # Quarterly observations keep their first-month key ("2024-04")
            "frequency": params["frequency"],
        }
