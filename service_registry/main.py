"""Service Registry FastAPI application.

Holds the service record table, probes every registered backend in the
background, and exposes the registration API under ``/registry``.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from service_registry.api.routes import router as registry_router
from service_registry.core.config import Settings, load_settings
from service_registry.core.logging import setup_logging
from service_registry.metrics.prometheus import metrics_router
from service_registry.services.health import HealthChecker, run_in_background
from service_registry.services.registry import Registry


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[Registry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the registry app. ``transport`` overrides the prober's HTTP transport."""
    settings = settings or load_settings()
    registry = registry if registry is not None else Registry.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the health poller with its own HTTP pool; stop it on shutdown."""
        async with httpx.AsyncClient(transport=transport) as client:
            app.state.health_checker = HealthChecker.from_settings(registry, client, settings)
            async with run_in_background(app.state.health_checker):
                yield

    app = FastAPI(title="Service Registry", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    app.include_router(registry_router, prefix="/registry", tags=["registry"])
    app.include_router(metrics_router)

    @app.get("/health")
    async def health():
        """Liveness of the registry itself."""
        return {"status": "OK", "records": len(registry)}

    return app


setup_logging()
app = create_app()
