"""
Upstream registry - maps upstream ids to configured adapters.
"""

from typing import TYPE_CHECKING, Iterator

from loguru import logger

from siteintel.datasource.base import BaseUpstream
from siteintel.datasource.climate import NOAAUpstream
from siteintel.datasource.crime import FBICrimeUpstream
from siteintel.datasource.demographics import CensusProfileUpstream, CensusSeriesUpstream
from siteintel.datasource.economic import BEAUpstream, FREDUpstream
from siteintel.datasource.housing import HUDUpstream
from siteintel.datasource.labor import BLSUpstream
from siteintel.datasource.places import FoursquareUpstream
from siteintel.services.errors import UnknownUpstreamError

if TYPE_CHECKING:
    from siteintel.settings import Settings


class UpstreamRegistry:
    """
    Lookup table of upstream adapters by service id.

    Usage:
        registry = UpstreamRegistry()
        registry.register(BLSUpstream(api_key="..."))
        upstream = registry.get("bls")
    """

    def __init__(self, upstreams: list[BaseUpstream] | None = None):
        self._upstreams: dict[str, BaseUpstream] = {}
        for upstream in upstreams or []:
            self.register(upstream)

    def register(self, upstream: BaseUpstream) -> None:
        if upstream.service_id in self._upstreams:
            logger.warning(f"Replacing registered upstream '{upstream.service_id}'")
        self._upstreams[upstream.service_id] = upstream

    def get(self, upstream_id: str) -> BaseUpstream:
        try:
            return self._upstreams[upstream_id]
        except KeyError:
            raise UnknownUpstreamError(upstream_id) from None

    def ids(self) -> list[str]:
        return sorted(self._upstreams)

    def __contains__(self, upstream_id: object) -> bool:
        return upstream_id in self._upstreams

    def __iter__(self) -> Iterator[BaseUpstream]:
        return iter(self._upstreams.values())

    def __len__(self) -> int:
        return len(self._upstreams)


def default_registry(settings: "Settings") -> UpstreamRegistry:
    """Build a registry with every built-in upstream, keyed from settings."""
    registry = UpstreamRegistry(
        [
            BLSUpstream(api_key=settings.bls_api_key),
            FBICrimeUpstream(api_key=settings.fbi_crime_api_key),
            BEAUpstream(api_key=settings.bea_api_key),
            FREDUpstream(api_key=settings.fred_api_key),
            NOAAUpstream(api_key=settings.noaa_api_token),
            FoursquareUpstream(api_key=settings.foursquare_api_key),
            CensusSeriesUpstream(api_key=settings.census_api_key),
            CensusProfileUpstream(api_key=settings.census_api_key),
            HUDUpstream(api_key=settings.hud_api_token),
        ]
    )

    unconfigured = [u.service_id for u in registry if not u.is_configured()]
    if unconfigured:
        logger.warning(f"Upstreams without API keys: {', '.join(unconfigured)}")
    return registry
