"""
SiteIntel entry point
Serves cached, fault-tolerant upstream metrics over HTTP
"""

import asyncio

import uvicorn
from loguru import logger

from siteintel.api import create_app
from siteintel.services.client import MetricService
from siteintel.settings import global_settings


async def main() -> None:
    """Main function"""
    logger.info("Starting SiteIntel...")

    service = MetricService.from_settings(global_settings)
    app = create_app(
        service,
        sweep_interval_minutes=global_settings.cache_sweep_interval_minutes,
    )
    config = uvicorn.Config(
        app,
        host=global_settings.host,
        port=global_settings.port,
        log_level="debug" if global_settings.debug else "info",
    )
    server = uvicorn.Server(config)

    logger.info(
        f"Serving {len(service.upstreams)} upstreams on "
        f"http://{global_settings.host}:{global_settings.port}"
    )
    try:
        await server.serve()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        # The app lifespan closes the service; this covers startup failures
        await service.close()
        logger.info("SiteIntel stopped")


if __name__ == "__main__":
    asyncio.run(main())
