"""
BLS labor statistics upstream.
"""

from siteintel.datasource.labor.bls import BLSUpstream, LAUS_MEASURES

__all__ = ["BLSUpstream", "LAUS_MEASURES"]
