"""FastAPI proxy and admin endpoints over the metric service."""

import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from siteintel.exceptions import ValidationError, to_http_exception
from siteintel.services.client import MetricService
from siteintel.services.errors import ServiceError
from siteintel.services.scheduler import CacheSweepScheduler

# Query parameter bounding a metric request, in seconds; never sent upstream
TIMEOUT_PARAM = "timeout"


class MetricQuery(BaseModel):
    """One entry of an aggregate request."""

    upstream: str
    params: dict[str, Any] = Field(default_factory=dict)


class AggregateRequest(BaseModel):
    queries: dict[str, MetricQuery]
    timeout: float | None = Field(default=None, gt=0)


def _deadline(timeout: float | None) -> float | None:
    return time.monotonic() + timeout if timeout is not None else None


class MetricsServer:
    """HTTP server exposing cached metrics and breaker/cache administration."""

    def __init__(self, service: MetricService, sweep_interval_minutes: int = 10):
        self.service = service
        self.sweeper = CacheSweepScheduler(service.cache, sweep_interval_minutes)
        self.app = FastAPI(title="SiteIntel Metrics", lifespan=self.lifespan)

        self.app.add_exception_handler(ServiceError, self.handle_service_error)

        # Register routes
        self.app.get("/health")(self.health_check)
        self.app.get("/api/metrics/{upstream_id}")(self.get_metric)
        self.app.post("/api/metrics/aggregate")(self.aggregate)
        self.app.get("/api/admin/breakers")(self.get_breakers)
        self.app.post("/api/admin/breakers/{upstream_id}/reset")(self.reset_breaker)
        self.app.delete("/api/admin/cache")(self.clear_cache)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        self.sweeper.start()
        try:
            yield
        finally:
            self.sweeper.stop()
            await self.service.close()

    async def handle_service_error(self, request: Request, exc: ServiceError) -> JSONResponse:
        http_exc = to_http_exception(exc)
        if http_exc.status_code >= 500:
            logger.warning(
                f"{request.method} {request.url.path} -> {http_exc.status_code}: {exc}"
            )
        return JSONResponse(
            status_code=http_exc.status_code,
            content={"detail": http_exc.detail},
            headers=http_exc.headers,
        )

    async def get_metric(self, upstream_id: str, request: Request):
        """
        Fetch one normalized metric.

        Every query parameter except ``timeout`` is passed to the upstream.
        """
        params = dict(request.query_params)
        timeout = params.pop(TIMEOUT_PARAM, None)
        deadline = None
        if timeout is not None:
            try:
                seconds = float(timeout)
            except ValueError:
                seconds = 0.0
            if not seconds > 0:
                raise ValidationError(f"Invalid timeout '{timeout}'")
            deadline = _deadline(seconds)

        result = await self.service.fetch_metric(upstream_id, params, deadline=deadline)
        return result.to_dict()

    async def aggregate(self, body: AggregateRequest):
        """Fetch several metrics; failures are reported next to successes."""
        result = await self.service.fetch_many(
            {name: (q.upstream, q.params) for name, q in body.queries.items()},
            deadline=_deadline(body.timeout),
        )
        return result.to_dict()

    async def get_breakers(self):
        return self.service.get_breaker_states()

    async def reset_breaker(self, upstream_id: str):
        return {"upstream_id": upstream_id, "reset": self.service.reset_circuit(upstream_id)}

    async def clear_cache(self, prefix: str | None = None, upstream: str | None = None):
        removed = self.service.clear_cache(prefix=prefix, upstream_id=upstream)
        return {"removed": removed}

    async def health_check(self):
        """Health check endpoint."""
        health = self.service.get_health_status()
        status = "degraded" if health["open_circuits"] else "ok"
        return {"status": status, "service": "siteintel", **health}


def create_app(service: MetricService, sweep_interval_minutes: int = 10) -> FastAPI:
    """Create the FastAPI app for a metric service.

    Args:
        service: MetricService instance
        sweep_interval_minutes: Cache sweep interval

    Returns:
        FastAPI app
    """
    server = MetricsServer(service, sweep_interval_minutes)
    return server.app
