"""
Census ACS demographics upstreams.
"""

from siteintel.datasource.demographics.census import (
    CensusProfileUpstream,
    CensusSeriesUpstream,
)

__all__ = ["CensusSeriesUpstream", "CensusProfileUpstream"]
