"""HTTP client for the Service Registry.

Resolves a service name by asking the registry for its healthy endpoints and
taking the first one. Includes basic Prometheus metrics for request counts and
latency.
"""

from __future__ import annotations

import logging
from typing import List

import httpx
from prometheus_client import Counter, Histogram

from api_gateway.core.config import Settings
from api_gateway.core.errors import ServiceUnavailable, UnknownService

log = logging.getLogger("API-Gateway.Discovery")

SD_REQUESTS = Counter("gateway_sd_requests_total", "Service registry lookups", ["status"])
SD_LATENCY = Histogram("gateway_sd_latency_seconds", "Service registry lookup latency seconds")


def _normalize_endpoints(payload: object) -> list[str]:
    """Base URLs from the registry's ``[{"address": "h:p", ...}, ...]`` records, in order."""
    if not isinstance(payload, list):
        return []
    return [f"http://{item['address']}" for item in payload if isinstance(item, dict) and item.get("address")]


class DiscoveryClient:
    """
    Resolver backed by the remote service registry.

    Holds an httpx.AsyncClient for connection pooling. A single lookup per
    call; an unreachable registry surfaces as ServiceUnavailable.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout_s: float = 2.0):
        """Create a client with a shared HTTPX AsyncClient and registry base URL."""
        self._client = client
        self._base = base_url.rstrip("/")
        self._timeout = timeout_s

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "DiscoveryClient":
        if settings.service_registry_url is None:
            raise RuntimeError("SERVICE_REGISTRY_URL is required when REGISTRY_MODE=remote")
        return cls(client, str(settings.service_registry_url), settings.registry_timeout_s)

    def _endpoints_url(self, service_name: str) -> str:
        return f"{self._base}/registry/services/{service_name}/endpoints"

    async def healthy_backends(self, service_name: str) -> List[str]:
        """Healthy base URLs for ``service_name`` in the registry's order."""
        url = self._endpoints_url(service_name)
        try:
            with SD_LATENCY.time():
                resp = await self._client.get(url, params={"healthy": "true"}, timeout=self._timeout)
        except httpx.HTTPError as e:
            SD_REQUESTS.labels(status="error").inc()
            log.warning("registry lookup for %s failed: %r", service_name, e)
            raise ServiceUnavailable(f"service registry unreachable while resolving {service_name}", service_name) from e

        SD_REQUESTS.labels(status=str(resp.status_code)).inc()
        if resp.status_code == 404:
            raise UnknownService(f"{service_name} is not registered", service_name)
        if resp.status_code != 200:
            log.warning("registry non-200 (%s) on %s", resp.status_code, url)
            raise ServiceUnavailable(f"service registry error while resolving {service_name}", service_name)
        try:
            return _normalize_endpoints(resp.json())
        except ValueError as e:
            raise ServiceUnavailable(f"invalid registry response for {service_name}", service_name) from e

    async def resolve(self, service_name: str) -> str:
        backends = await self.healthy_backends(service_name)
        if not backends:
            raise ServiceUnavailable(f"no healthy instance of {service_name}", service_name)
        return backends[0]
