"""
FBI Crime Data Explorer upstream (state-level annual estimates).

API Documentation: https://cde.ucr.cjis.gov/LATEST/webapp/#/pages/docApi
Get API key at: https://api.data.gov/signup/
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest
from siteintel.normalize import Family
from siteintel.normalize.config import FBI_OFFENSE_FIELDS
from siteintel.services.errors import InvalidParamsError


class FBICrimeUpstream(BaseUpstream):
    """Annual crime estimates for a state."""

    BASE_URL = "https://api.usa.gov/crime/fbi/cde"

    service_id = "fbi"
    family = Family.CRIME
    cache_ttl = timedelta(hours=12)
    required_params = ("state",)
    defaults = {
        "offense": "violent-crime",
        "measure": "rate",
        "from": "2014",
        "to": "2023",
    }

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        clean["state"] = clean["state"].upper()
        if len(clean["state"]) != 2 or not clean["state"].isalpha():
            raise InvalidParamsError(
                "state must be a two-letter abbreviation", service_id=self.service_id
            )
        if clean["offense"] not in FBI_OFFENSE_FIELDS:
            raise InvalidParamsError(
                f"Unknown offense '{clean['offense']}'", service_id=self.service_id
            )
        if clean["measure"] not in ("rate", "count"):
            raise InvalidParamsError(
                "measure must be 'rate' or 'count'", service_id=self.service_id
            )
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        return [
            UpstreamRequest(
                method="GET",
                url=f"{self.BASE_URL}/estimate/state/{params['state']}",
                params={
                    "from": params["from"],
                    "to": params["to"],
                    "API_KEY": self.api_key,
                },
                headers={"Accept": "application/json"},
            )
        ]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        offense_label = params["offense"].replace("-", " ").title()
        return {
            "upstream_id": self.service_id,
            "label": f"{params['state']} {offense_label}",
            "unit": "per 100k" if params["measure"] == "rate" else "incidents",
            "offense": params["offense"],
            "measure": params["measure"],
        }
