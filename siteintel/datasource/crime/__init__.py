"""
FBI crime statistics upstream.
"""

from siteintel.datasource.crime.fbi import FBICrimeUpstream

__all__ = ["FBICrimeUpstream"]
