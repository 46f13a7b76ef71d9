"""Per-request pipeline: parse the path, resolve the service, forward.

Every request ends in exactly one log line with method, path, target (or the
failure kind) and final status.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram

from api_gateway.core.config import Settings
from api_gateway.core.errors import GatewayError
from api_gateway.models.schemas import ResolvedTarget, RouteRequest
from api_gateway.services.proxy import forward
from api_gateway.services.resolver import Resolver
from api_gateway.services.router import parse_path

log = logging.getLogger("API-Gateway")

REQUESTS = Counter("gateway_requests_total", "Requests handled by the gateway", ["service", "outcome"])
UPSTREAM_LATENCY = Histogram("gateway_upstream_latency_seconds", "Time until upstream response headers")


class Stage(str, Enum):
    RECEIVED = "received"
    PARSED = "parsed"
    RESOLVED = "resolved"
    FORWARDED = "forwarded"
    RESPONDED = "responded"
    FAILED = "failed"


def error_response(err: GatewayError) -> JSONResponse:
    return JSONResponse(err.to_dict(), status_code=err.status_code)


class Gateway:
    """Composes the path router, a resolver and the forwarder."""

    def __init__(self, resolver: Resolver, client: httpx.AsyncClient, prefix: str = "api", suffix: str = "-service"):
        self._resolver = resolver
        self._client = client
        self._prefix = prefix
        self._suffix = suffix

    @classmethod
    def from_settings(cls, resolver: Resolver, client: httpx.AsyncClient, settings: Settings) -> "Gateway":
        return cls(resolver, client, settings.route_prefix, settings.service_suffix)

    async def handle(self, request: Request) -> Response:
        """Run one request through the pipeline; ``request.state.stage`` ends RESPONDED or FAILED."""
        route_req = await RouteRequest.from_request(request)
        stage = request.state.stage = Stage.RECEIVED
        target: Optional[ResolvedTarget] = None
        service_name = "-"
        try:
            service_name, forward_path = parse_path(route_req.path, self._prefix, self._suffix)
            stage = request.state.stage = Stage.PARSED
            base_url = await self._resolver.resolve(service_name)
            target = ResolvedTarget(service_name=service_name, base_url=base_url, forward_path=forward_path)
            stage = request.state.stage = Stage.RESOLVED
            with UPSTREAM_LATENCY.time():
                response = await forward(
                    self._client, route_req, target.base_url, target.forward_path, service_name=service_name
                )
            request.state.stage = Stage.FORWARDED
        except GatewayError as err:
            request.state.stage = Stage.FAILED
            REQUESTS.labels(service=service_name, outcome=err.kind).inc()
            log.warning(
                "%s %s -> %s failed after %s: %s status=%d",
                route_req.method, route_req.path, service_name, stage.value, err.kind, err.status_code,
            )
            return error_response(err)

        REQUESTS.labels(service=service_name, outcome=str(response.status_code)).inc()
        log.info(
            "%s %s -> %s%s status=%d",
            route_req.method, route_req.path, target.base_url, target.forward_path, response.status_code,
        )
        request.state.stage = Stage.RESPONDED
        return response
