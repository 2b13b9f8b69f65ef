"""
BLS Local Area Unemployment Statistics (LAUS) upstream.

API Documentation: https://www.bls.gov/developers/api_signature_v2.htm
Registration key is optional but raises the daily query limit.
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest, pad
from siteintel.normalize import Family
from siteintel.services.errors import (
    InvalidParamsError,
    ServiceError,
    TransientUpstreamError,
)

# measure -> (LAUS measure code, label, unit)
LAUS_MEASURES: dict[str, tuple[str, str, str]] = {
    "unemployment_rate": ("03", "Unemployment rate", "%"),
    "unemployment": ("04", "Unemployed persons", "persons"),
    "employment": ("05", "Employed persons", "persons"),
    "labor_force": ("06", "Labor force", "persons"),
}


class BLSUpstream(BaseUpstream):
    """County labor statistics from the BLS timeseries API."""

    BASE_URL = "https://api.bls.gov/publicAPI/v2/timeseries/data/"

    service_id = "bls"
    family = Family.LABOR
    label = "Unemployment rate"
    unit = "%"
    cache_ttl = timedelta(minutes=10)
    required_params = ("state", "county")
    defaults = {"start": "2020-01", "end": "2025-12", "measure": "unemployment_rate"}

    def is_configured(self) -> bool:
        """The public API works without a key at a lower daily limit."""
        return True

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        if clean["measure"] not in LAUS_MEASURES:
            raise InvalidParamsError(
                f"Unknown LAUS measure '{clean['measure']}'", service_id=self.service_id
            )
        clean["state"] = pad(clean["state"], 2)
        clean["county"] = pad(clean["county"], 3)
        return clean

    def series_id(self, params: dict[str, Any]) -> str:
        code = LAUS_MEASURES[params["measure"]][0]
        return f"LAUCN{params['state']}{params['county']}00000000{code}"

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        body: dict[str, Any] = {
            "seriesid": [self.series_id(params)],
            "startyear": params["start"][:4],
            "endyear": params["end"][:4],
        }
        if self.api_key:
            body["registrationKey"] = self.api_key
        return [UpstreamRequest(method="POST", url=self.BASE_URL, json=body)]

    def check_payload(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return
        status = payload.get("status")
        if status in (None, "REQUEST_SUCCEEDED"):
            return
        message = "; ".join(payload.get("message") or []) or str(status)
        # Daily threshold and overload notices come back as 200s
        if status == "REQUEST_NOT_PROCESSED":
            raise TransientUpstreamError(f"BLS: {message}", service_id=self.service_id)
        raise ServiceError(f"BLS: {message}", service_id=self.service_id)

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        _, label, unit = LAUS_MEASURES[params["measure"]]
        return {"upstream_id": self.service_id, "label": label, "unit": unit}
