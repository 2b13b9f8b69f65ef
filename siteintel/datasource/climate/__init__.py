"""
NOAA climate upstream.
"""

from siteintel.datasource.climate.noaa import NOAAUpstream

__all__ = ["NOAAUpstream"]
