import httpx
import pytest

from api_gateway.core.config import Settings
from api_gateway.core.errors import ServiceUnavailable, UnknownService
from api_gateway.services.discovery_client import DiscoveryClient
from api_gateway.services.resolver import RegistryResolver, ResolverTable, StaticResolver, to_base_url
from service_registry.models.schemas import ServiceRegistration
from service_registry.services.registry import Registry


def test_to_base_url():
    assert to_base_url("users:8081") == "http://users:8081"
    assert to_base_url("https://users.internal/") == "https://users.internal"


@pytest.mark.anyio
async def test_static_resolver():
    resolver = StaticResolver({"users-service": "10.0.0.1:8081"})
    assert await resolver.resolve("users-service") == "http://10.0.0.1:8081"
    with pytest.raises(UnknownService):
        await resolver.resolve("orders-service")


@pytest.mark.anyio
async def test_registry_resolver_distinguishes_unknown_from_unavailable(clock):
    registry = Registry(clock=clock)
    resolver = RegistryResolver(registry)

    with pytest.raises(UnknownService):
        await resolver.resolve("users-service")

    first = registry.register(ServiceRegistration(name="users-service", address="10.0.0.1:8081"))
    second = registry.register(ServiceRegistration(name="users-service", address="10.0.0.2:8081"))
    with pytest.raises(ServiceUnavailable) as exc:
        await resolver.resolve("users-service")
    assert exc.value.status_code == 503
    assert exc.value.service == "users-service"

    registry.record_probe(second.id, ok=True)
    assert await resolver.resolve("users-service") == "http://10.0.0.2:8081"
    registry.record_probe(first.id, ok=True)
    assert await resolver.resolve("users-service") == "http://10.0.0.1:8081"


@pytest.mark.anyio
async def test_table_prefers_static_entries_over_default(clock):
    registry = Registry(clock=clock)
    rec = registry.register(ServiceRegistration(name="users-service", address="10.0.0.1:8081"))
    registry.record_probe(rec.id, ok=True)

    table = ResolverTable.with_static({"users-service": "pinned:9000"}, default=RegistryResolver(registry))
    assert await table.resolve("users-service") == "http://pinned:9000"

    registry.register(ServiceRegistration(name="orders-service", address="10.0.0.3:8083"))
    with pytest.raises(ServiceUnavailable):
        await table.resolve("orders-service")


@pytest.mark.anyio
async def test_table_without_default_only_knows_static_names():
    table = ResolverTable.with_static({"users-service": "users:8081"})
    assert await table.resolve("users-service") == "http://users:8081"
    with pytest.raises(UnknownService):
        await table.resolve("products-service")


def _registry_transport(responses: dict):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        name = request.url.path.split("/")[3]
        result = responses.get(name)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return httpx.Response(404, json={"detail": f"unknown service {name}"})
        return result

    return httpx.MockTransport(handler), seen


@pytest.mark.anyio
async def test_discovery_client_takes_first_healthy_endpoint():
    transport, seen = _registry_transport({
        "users-service": httpx.Response(200, json=[
            {"id": "u1", "name": "users-service", "address": "10.0.0.1:8081", "healthy": True},
            {"id": "u2", "name": "users-service", "address": "10.0.0.2:8081", "healthy": True},
        ]),
    })
    async with httpx.AsyncClient(transport=transport) as client:
        dc = DiscoveryClient(client, "http://registry:7000/")
        assert await dc.resolve("users-service") == "http://10.0.0.1:8081"

    assert seen[0].url.path == "/registry/services/users-service/endpoints"
    assert seen[0].url.params["healthy"] == "true"


@pytest.mark.anyio
async def test_discovery_client_failure_modes():
    transport, _ = _registry_transport({
        "empty-service": httpx.Response(200, json=[]),
        "broken-service": httpx.Response(500, text="boom"),
        "down-service": httpx.ConnectError("refused"),
    })
    async with httpx.AsyncClient(transport=transport) as client:
        dc = DiscoveryClient(client, "http://registry:7000")
        with pytest.raises(UnknownService):
            await dc.resolve("ghost-service")
        with pytest.raises(ServiceUnavailable):
            await dc.resolve("empty-service")
        with pytest.raises(ServiceUnavailable):
            await dc.resolve("broken-service")
        with pytest.raises(ServiceUnavailable):
            await dc.resolve("down-service")


@pytest.mark.anyio
async def test_discovery_client_reads_registry_addresses_in_order():
    transport, _ = _registry_transport({
        "a-service": httpx.Response(200, json=[
            {"id": "a1", "name": "a-service", "address": "10.0.0.1:8080"},
            {"id": "a2", "name": "a-service"},
            {"id": "a3", "name": "a-service", "address": "10.0.0.3:8080"},
        ]),
        "b-service": httpx.Response(200, json={"address": "10.0.0.9:8080"}),
    })
    async with httpx.AsyncClient(transport=transport) as client:
        dc = DiscoveryClient(client, "http://registry:7000")
        assert await dc.healthy_backends("a-service") == ["http://10.0.0.1:8080", "http://10.0.0.3:8080"]
        assert await dc.healthy_backends("b-service") == []


def test_discovery_client_requires_registry_url():
    with pytest.raises(RuntimeError):
        DiscoveryClient.from_settings(httpx.AsyncClient(), Settings(registry_mode="remote"))
