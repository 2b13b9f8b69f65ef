"""
HTTP surface for the metric service.
"""

from siteintel.api.routes import MetricsServer, create_app

__all__ = ["MetricsServer", "create_app"]
