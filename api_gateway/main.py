"""API Gateway FastAPI application.

Creates the gateway, wires routes, configures logging, and exposes health and
Prometheus metrics endpoints.
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api_gateway.api.routes import router
from api_gateway.core.config import Settings, load_settings
from api_gateway.core.logging import setup_logging
from api_gateway.services.discovery_client import DiscoveryClient
from api_gateway.services.gateway import Gateway
from api_gateway.services.resolver import RegistryResolver, Resolver, ResolverTable
from service_registry.api.routes import router as registry_router
from service_registry.core.config import Settings as RegistrySettings
from service_registry.core.config import load_settings as load_registry_settings
from service_registry.metrics.prometheus import metrics_router as registry_metrics_router
from service_registry.services.health import HealthChecker, run_in_background
from service_registry.services.registry import Registry


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry_settings: Optional[RegistrySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the gateway app.

    ``registry_settings`` only matters in embedded mode. ``transport`` replaces
    the outbound HTTP transport (backends, registry and health probes).
    """
    settings = settings or load_settings()
    registry: Optional[Registry] = None
    if settings.registry_mode == "embedded":
        registry_settings = registry_settings or load_registry_settings()
        registry = Registry.from_settings(registry_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Opens the shared HTTP pool and builds the resolver table and Gateway
        for the lifetime of the app. In embedded mode the health poller runs
        alongside.
        """
        timeout = httpx.Timeout(settings.request_timeout_s, connect=settings.connect_timeout_s)
        async with AsyncExitStack() as stack:
            client = await stack.enter_async_context(
                httpx.AsyncClient(timeout=timeout, follow_redirects=False, transport=transport)
            )
            default: Optional[Resolver] = None
            if registry is not None:
                app.state.health_checker = HealthChecker.from_settings(registry, client, registry_settings)
                await stack.enter_async_context(run_in_background(app.state.health_checker))
                default = RegistryResolver(registry)
            elif settings.registry_mode == "remote":
                default = DiscoveryClient.from_settings(client, settings)

            resolver = ResolverTable.with_static(settings.static_services, default)
            app.state.gateway = Gateway.from_settings(resolver, client, settings)
            yield

    app = FastAPI(title="API Gateway", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    @app.get("/readyz")
    async def readyz():
        """Readiness probe endpoint returning a minimal OK payload."""
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics(_: Request):
        """Prometheus exposition endpoint for gateway process metrics."""
        data = generate_latest()
        return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)

    if registry is not None:
        app.include_router(registry_router, prefix="/registry", tags=["registry"])
        # probe and record metrics live in the registry's own CollectorRegistry
        app.include_router(registry_metrics_router, prefix="/registry")
    # catch-all route, must come last
    app.include_router(router)
    return app


setup_logging()
app = create_app()
