"""Service name -> endpoint resolution strategies."""
from __future__ import annotations

from typing import Mapping, Optional, Protocol

from api_gateway.core.errors import ServiceUnavailable, UnknownService
from service_registry.services.registry import Registry


def to_base_url(address: str) -> str:
    """Accept ``host:port`` or a full URL and return a base URL without trailing slash."""
    address = address.strip().rstrip("/")
    return address if "://" in address else f"http://{address}"


class Resolver(Protocol):
    """Anything that can turn a service name into a base URL."""

    async def resolve(self, service_name: str) -> str:
        """Return ``http://host:port`` or raise UnknownService / ServiceUnavailable."""
        ...


class StaticResolver:
    """Fixed mapping from configuration. Entries are assumed to be up."""

    def __init__(self, services: Mapping[str, str]):
        self._services = {name: to_base_url(addr) for name, addr in services.items()}

    async def resolve(self, service_name: str) -> str:
        try:
            return self._services[service_name]
        except KeyError:
            raise UnknownService(f"{service_name} is not configured", service_name) from None


class RegistryResolver:
    """Reads an in-process Registry; first eligible record in registration order wins."""

    def __init__(self, registry: Registry):
        self._registry = registry

    async def resolve(self, service_name: str) -> str:
        record = self._registry.first_healthy(service_name)
        if record is not None:
            return record.base_url
        if not self._registry.is_known(service_name):
            raise UnknownService(f"{service_name} is not registered", service_name)
        raise ServiceUnavailable(f"no healthy instance of {service_name}", service_name)


class ResolverTable:
    """
    Closed dispatch table: explicit per-name strategies first, then a default.

    With no default, names outside the table are unknown.
    """

    def __init__(self, strategies: Optional[Mapping[str, Resolver]] = None, default: Optional[Resolver] = None):
        self._strategies = dict(strategies or {})
        self._default = default

    @classmethod
    def with_static(cls, services: Mapping[str, str], default: Optional[Resolver] = None) -> "ResolverTable":
        static = StaticResolver(services)
        return cls({name: static for name in services}, default)

    def strategy_for(self, service_name: str) -> Optional[Resolver]:
        return self._strategies.get(service_name, self._default)

    async def resolve(self, service_name: str) -> str:
        strategy = self.strategy_for(service_name)
        if strategy is None:
            raise UnknownService(f"no route configured for {service_name}", service_name)
        return await strategy.resolve(service_name)
