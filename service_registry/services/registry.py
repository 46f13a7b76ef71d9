"""In-memory service registry.

Records are kept in registration order so that resolution can pick the first
eligible instance deterministically. A record is eligible only while it is
healthy and its last probe is within the freshness window; records that have
never been probed are not eligible.
"""
from __future__ import annotations

import logging
from threading import RLock
from time import monotonic
from typing import Callable, Dict, List, Optional

from service_registry.core.config import Settings
from service_registry.models.schemas import ServiceRecord, ServiceRegistration

log = logging.getLogger("Service-Registry.Registry")


class Registry:
    """Thread-safe registry of service instances. Readers always get copies."""

    def __init__(
        self,
        failure_threshold: int = 1,
        freshness_ttl_s: float = 30.0,
        reap_after_failures: int = 0,
        default_health_path: str = "/health",
        clock: Callable[[], float] = monotonic,
    ):
        self._records: Dict[str, ServiceRecord] = {}
        self._by_name: Dict[str, list[str]] = {}
        self._known_names: set[str] = set()
        self._lock = RLock()
        self._failure_threshold = failure_threshold
        self._freshness_ttl_s = freshness_ttl_s
        self._reap_after_failures = reap_after_failures
        self._default_health_path = default_health_path
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "Registry":
        return cls(
            failure_threshold=settings.failure_threshold,
            freshness_ttl_s=settings.freshness_ttl_s,
            reap_after_failures=settings.reap_after_failures,
            default_health_path=settings.default_health_path,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def register(self, reg: ServiceRegistration) -> ServiceRecord:
        """Create or update a record. Updating keeps its registration position."""
        record_id = reg.record_id()
        health_path = reg.health_path or self._default_health_path
        with self._lock:
            current = self._records.get(record_id)
            if current is not None and current.name == reg.name and current.address == reg.address:
                current.health_path = health_path
                return current.model_copy()
            if current is not None and current.name != reg.name:
                self._unindex(current)
            if current is None or current.name != reg.name:
                self._by_name.setdefault(reg.name, []).append(record_id)
            # new or moved instance: it has to pass a probe before it is routable
            out = ServiceRecord(
                id=record_id, name=reg.name, address=reg.address, health_path=health_path
            )
            self._records[record_id] = out
            self._known_names.add(reg.name)
            log.info("registered %s (%s) at %s", record_id, reg.name, reg.address)
            return out.model_copy()

    def deregister(self, record_id: str) -> bool:
        with self._lock:
            rec = self._records.pop(record_id, None)
            if not rec:
                return False
            self._unindex(rec)
            log.info("deregistered %s (%s)", record_id, rec.name)
            return True

    def _unindex(self, rec: ServiceRecord) -> None:
        ids = self._by_name.get(rec.name)
        if ids and rec.id in ids:
            ids.remove(rec.id)
            if not ids:
                self._by_name.pop(rec.name, None)

    def record_probe(self, record_id: str, ok: bool, address: Optional[str] = None) -> Optional[ServiceRecord]:
        """Apply one probe result. Returns the updated record, or None if it is gone.

        ``address`` is the address that was probed; a result for an address the
        record no longer has is ignored.
        """
        with self._lock:
            rec = self._records.get(record_id)
            if not rec or (address is not None and rec.address != address):
                return None
            rec.last_checked = self._clock()
            if ok:
                if not rec.healthy:
                    log.info("%s (%s) is healthy", rec.id, rec.name)
                rec.healthy = True
                rec.consecutive_failures = 0
                return rec.model_copy()

            rec.consecutive_failures += 1
            if rec.healthy and rec.consecutive_failures >= self._failure_threshold:
                rec.healthy = False
                log.warning(
                    "%s (%s) marked unhealthy after %d failed probes",
                    rec.id, rec.name, rec.consecutive_failures,
                )
            if self._reap_after_failures and rec.consecutive_failures >= self._reap_after_failures:
                self.deregister(record_id)
                return None
            return rec.model_copy()

    def is_eligible(self, rec: ServiceRecord) -> bool:
        if not rec.healthy or rec.last_checked is None:
            return False
        return (self._clock() - rec.last_checked) <= self._freshness_ttl_s

    def is_known(self, name: str) -> bool:
        with self._lock:
            return name in self._known_names

    def get(self, record_id: str) -> Optional[ServiceRecord]:
        with self._lock:
            rec = self._records.get(record_id)
            return rec.model_copy() if rec else None

    def list_by_name(self, name: str, healthy_only: bool = True) -> List[ServiceRecord]:
        """Records for ``name`` in registration order."""
        with self._lock:
            recs = [self._records[i] for i in self._by_name.get(name, [])]
            if healthy_only:
                recs = [r for r in recs if self.is_eligible(r)]
            return [r.model_copy() for r in recs]

    def first_healthy(self, name: str) -> Optional[ServiceRecord]:
        recs = self.list_by_name(name, healthy_only=True)
        return recs[0] if recs else None

    def all(self) -> List[ServiceRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records.values()]

    def services_map(self) -> Dict[str, List[ServiceRecord]]:
        with self._lock:
            return {
                name: [self._records[i].model_copy() for i in ids]
                for name, ids in self._by_name.items()
            }
