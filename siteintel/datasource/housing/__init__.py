"""
HUD housing upstream.
"""

from siteintel.datasource.housing.hud import HUDUpstream

__all__ = ["HUDUpstream"]
