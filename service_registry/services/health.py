"""Active health probing for registered services.

Every interval the checker snapshots the registry, probes each record's health
URL concurrently, and feeds the results back. Probes run outside the registry
lock, so resolution never waits on the network.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator

import httpx

from service_registry.core.config import Settings
from service_registry.metrics.prometheus import SD_PROBES
from service_registry.models.schemas import ServiceRecord
from service_registry.services.registry import Registry

log = logging.getLogger("Service-Registry.Health")


class HealthChecker:
    """Periodic liveness prober for every record in a Registry."""

    def __init__(
        self,
        registry: Registry,
        client: httpx.AsyncClient,
        interval_s: float = 10.0,
        timeout_s: float = 1.0,
        startup_delay_s: float = 0.5,
    ):
        self._registry = registry
        self._client = client
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._startup_delay_s = startup_delay_s

    @classmethod
    def from_settings(cls, registry: Registry, client: httpx.AsyncClient, settings: Settings) -> "HealthChecker":
        return cls(
            registry, client, settings.health_interval_s, settings.health_timeout_s, settings.health_startup_delay_s
        )

    async def probe(self, record: ServiceRecord) -> bool:
        """True when the health endpoint answers 2xx within the timeout."""
        try:
            r = await self._client.get(record.health_url, timeout=self._timeout_s)
        except httpx.HTTPError as e:
            log.debug("probe %s failed: %r", record.health_url, e)
            return False
        return 200 <= r.status_code < 300

    async def _check(self, record: ServiceRecord) -> None:
        ok = await self.probe(record)
        SD_PROBES.labels(result="pass" if ok else "fail").inc()
        self._registry.record_probe(record.id, ok, address=record.address)

    async def run_once(self) -> None:
        """Probe every registered record once."""
        records = self._registry.all()
        if records:
            await asyncio.gather(*(self._check(r) for r in records))

    async def run_forever(self) -> None:
        await asyncio.sleep(self._startup_delay_s)  # let app start
        while True:
            try:
                await self.run_once()
            except Exception:
                log.exception("health poller error")
            await asyncio.sleep(self._interval_s)


@asynccontextmanager
async def run_in_background(checker: HealthChecker) -> AsyncIterator[asyncio.Task]:
    """Run ``checker.run_forever`` as a task for the duration of the block."""
    task = asyncio.create_task(checker.run_forever(), name="health-checker")
    try:
        yield task
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
