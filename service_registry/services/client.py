"""HTTP client backends use to (de)register themselves with the registry."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from service_registry.models.schemas import ServiceRecord, ServiceRegistration

log = logging.getLogger("Service-Registry.Client")


class RegistryClient:
    """
    Thin wrapper over the registration API.

    A backend calls ``register`` once it is listening and ``deregister`` on
    shutdown. Errors propagate as ``httpx.HTTPError``; a failed registration
    is fatal to the backend's startup, not something to retry here.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self._client = client
        self._base = base_url.rstrip("/")

    async def register(
        self,
        name: str,
        address: str,
        *,
        service_id: Optional[str] = None,
        health_path: Optional[str] = None,
    ) -> ServiceRecord:
        reg = ServiceRegistration(name=name, address=address, id=service_id, health_path=health_path)
        resp = await self._client.post(
            f"{self._base}/registry/services", json=reg.model_dump(exclude_none=True)
        )
        resp.raise_for_status()
        record = ServiceRecord.model_validate(resp.json())
        log.info("registered %s as %s at %s", name, record.id, address)
        return record

    async def deregister(self, service_id: str) -> bool:
        """False when the registry did not know the id."""
        resp = await self._client.delete(f"{self._base}/registry/services/{service_id}")
        if resp.status_code == 404:
            return False
        resp.raise_for_status()
        log.info("deregistered %s", service_id)
        return True
