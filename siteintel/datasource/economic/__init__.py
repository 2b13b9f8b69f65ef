"""
BEA and FRED economic statistics upstreams.
"""

from siteintel.datasource.economic.bea import BEAUpstream
from siteintel.datasource.economic.fred import FREDUpstream

__all__ = ["BEAUpstream", "FREDUpstream"]
