"""
Foursquare Places search upstream.

API Documentation: https://docs.foursquare.com/developer/reference/place-search
"""

from datetime import timedelta
from typing import Any

from siteintel.datasource.base import BaseUpstream, UpstreamRequest
from siteintel.normalize import Family
from siteintel.normalize.config import DEFAULT_CATEGORIES
from siteintel.services.errors import InvalidParamsError


class FoursquareUpstream(BaseUpstream):
    """Points of interest within a radius of a coordinate."""

    BASE_URL = "https://api.foursquare.com/v3/places/search"

    service_id = "foursquare"
    family = Family.PLACES
    label = "Nearby amenities"
    cache_ttl = timedelta(hours=1)
    required_params = ("lat", "lng")
    defaults = {"radius": "1600", "categories": DEFAULT_CATEGORIES, "limit": "50"}

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        clean = super().validate(params)
        try:
            lat, lng = float(clean["lat"]), float(clean["lng"])
        except ValueError as e:
            raise InvalidParamsError(
                "lat and lng must be numbers", service_id=self.service_id
            ) from e
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise InvalidParamsError("lat/lng out of range", service_id=self.service_id)
        return clean

    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        return [
            UpstreamRequest(
                method="GET",
                url=self.BASE_URL,
                params={
                    "ll": f"{params['lat']},{params['lng']}",
                    "radius": params["radius"],
                    "categories": params["categories"],
                    "limit": params["limit"],
                    "sort": "RELEVANCE",
                },
                # Foursquare v3 takes the bare key, no "Bearer" prefix
                headers={"Authorization": self.api_key, "Accept": "application/json"},
            )
        ]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"upstream_id": self.service_id, "label": self.label}
