"""
Foursquare places upstream.
"""

from siteintel.datasource.places.foursquare import FoursquareUpstream

__all__ = ["FoursquareUpstream"]
