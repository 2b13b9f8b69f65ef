"""
HUD USPS vacancy upstream (quarterly address counts by ZIP).

API Documentation: https://www.huduser.gov/portal/dataset/uspszip-api.html
Get API token at: https://www.huduser.gov/hudapi/public/register
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest, pad
from siteintel.normalize import Family
from siteintel.normalize.config import HUD_LOOKBACK_QUARTERS, HUD_MEASURES
from siteintel.services.errors import InvalidParamsError, ServiceError


class HUDUpstream(BaseUpstream):
    """USPS residential vacancy and occupancy rates for a ZIP code."""

    BASE_URL = "https://www.huduser.gov/hudapi/public/usps"

    service_id = "hud"
    family = Family.HOUSING
    cache_ttl = timedelta(hours=6)
    required_params = ("zip",)
    defaults = {"measure": "vacancy_rate", "lookback": str(HUD_LOOKBACK_QUARTERS)}

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        clean["zip"] = pad(clean["zip"], 5)
        if len(clean["zip"]) != 5 or not clean["zip"].isdigit():
            raise InvalidParamsError("zip must be a 5-digit ZIP code", service_id=self.service_id)
        if clean["measure"] not in HUD_MEASURES:
            raise InvalidParamsError(
                f"measure must be one of: {', '.join(HUD_MEASURES)}", service_id=self.service_id
            )
        if not clean["lookback"].isdigit() or not 1 <= int(clean["lookback"]) <= 40:
            raise InvalidParamsError(
                "lookback must be between 1 and 40 quarters", service_id=self.service_id
            )
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        return [
            UpstreamRequest(
                method="GET",
                url=self.BASE_URL,
                # type=3 selects ZIP-level data; year=0 asks for every available quarter
                params={"type": "3", "query": params["zip"], "year": "0"},
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "application/json",
                },
            )
        ]

    def check_payload(self, payload: Any) -> None:
        if isinstance(payload, dict) and payload.get("error"):
            raise ServiceError(f"HUD: {payload['error']}", service_id=self.service_id)

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "upstream_id": self.service_id,
            "measure": params["measure"],
            "lookback_quarters": int(params["lookback"]),
            "zip_code": params["zip"],
        }
