import pytest
from pydantic import ValidationError

from service_registry.core.config import Settings
from service_registry.models.schemas import ServiceRegistration
from service_registry.services.registry import Registry


def _reg(name="users-service", address="10.0.0.1:8081", **kw):
    return ServiceRegistration(name=name, address=address, **kw)


def test_new_record_is_not_routable_until_probed(clock):
    registry = Registry(clock=clock)
    rec = registry.register(_reg())

    assert rec.id == "users-service-10.0.0.1-8081"
    assert rec.healthy is False
    assert registry.first_healthy("users-service") is None
    assert registry.is_known("users-service")

    registry.record_probe(rec.id, ok=True)
    assert registry.first_healthy("users-service").address == "10.0.0.1:8081"


def test_first_healthy_follows_registration_order(clock):
    registry = Registry(clock=clock)
    a = registry.register(_reg(address="10.0.0.1:8081"))
    b = registry.register(_reg(address="10.0.0.2:8081"))
    registry.record_probe(b.id, ok=True)
    registry.record_probe(a.id, ok=True)

    assert registry.first_healthy("users-service").id == a.id

    registry.record_probe(a.id, ok=False)
    assert registry.first_healthy("users-service").id == b.id
    assert [r.id for r in registry.list_by_name("users-service", healthy_only=False)] == [a.id, b.id]


def test_failure_threshold_then_recovery(clock):
    registry = Registry(failure_threshold=3, clock=clock)
    rec = registry.register(_reg())
    registry.record_probe(rec.id, ok=True)

    registry.record_probe(rec.id, ok=False)
    registry.record_probe(rec.id, ok=False)
    assert registry.first_healthy("users-service") is not None

    updated = registry.record_probe(rec.id, ok=False)
    assert updated.healthy is False
    assert updated.consecutive_failures == 3
    assert registry.list_by_name("users-service") == []

    updated = registry.record_probe(rec.id, ok=True)
    assert updated.healthy is True
    assert updated.consecutive_failures == 0
    assert registry.first_healthy("users-service").id == rec.id


def test_stale_probe_result_is_not_trusted(clock):
    registry = Registry(freshness_ttl_s=30, clock=clock)
    rec = registry.register(_reg())
    registry.record_probe(rec.id, ok=True)

    clock.advance(30)
    assert registry.first_healthy("users-service") is not None
    clock.advance(0.5)
    assert registry.first_healthy("users-service") is None

    registry.record_probe(rec.id, ok=True)
    assert registry.first_healthy("users-service") is not None


def test_reregister_keeps_position_and_requires_new_probe_on_move(clock):
    registry = Registry(clock=clock)
    a = registry.register(_reg(id="users-1", address="10.0.0.1:8081"))
    b = registry.register(_reg(id="users-2", address="10.0.0.2:8081"))
    registry.record_probe(a.id, ok=True)
    registry.record_probe(b.id, ok=True)

    # same address: probe state is kept
    same = registry.register(_reg(id="users-1", address="10.0.0.1:8081", health_path="/healthz"))
    assert same.healthy is True
    assert same.health_path == "/healthz"

    moved = registry.register(_reg(id="users-1", address="10.0.0.9:8081"))
    assert moved.healthy is False
    assert registry.first_healthy("users-service").id == "users-2"

    registry.record_probe("users-1", ok=True)
    ids = [r.id for r in registry.list_by_name("users-service")]
    assert ids == ["users-1", "users-2"]


def test_reregister_under_new_name_moves_the_record(clock):
    registry = Registry(clock=clock)
    registry.register(_reg(id="x-1", name="users-service"))
    registry.register(_reg(id="x-1", name="accounts-service"))

    assert registry.list_by_name("users-service", healthy_only=False) == []
    assert [r.id for r in registry.list_by_name("accounts-service", healthy_only=False)] == ["x-1"]


def test_probe_result_for_previous_address_is_ignored(clock):
    registry = Registry(clock=clock)
    registry.register(_reg(id="users-1", address="10.0.0.1:8081"))
    registry.register(_reg(id="users-1", address="10.0.0.2:8081"))

    assert registry.record_probe("users-1", ok=True, address="10.0.0.1:8081") is None
    assert registry.first_healthy("users-service") is None


def test_deregister(clock):
    registry = Registry(clock=clock)
    rec = registry.register(_reg())
    registry.record_probe(rec.id, ok=True)

    assert registry.deregister(rec.id) is True
    assert registry.deregister(rec.id) is False
    assert registry.first_healthy("users-service") is None
    assert registry.record_probe(rec.id, ok=True) is None
    assert len(registry) == 0
    # the name stays known so callers can tell "gone" from "never existed"
    assert registry.is_known("users-service")
    assert not registry.is_known("orders-service")


def test_sustained_failure_reaps_record(clock):
    registry = Registry(failure_threshold=1, reap_after_failures=3, clock=clock)
    rec = registry.register(_reg())
    registry.record_probe(rec.id, ok=True)

    assert registry.record_probe(rec.id, ok=False) is not None
    assert registry.record_probe(rec.id, ok=False) is not None
    assert registry.record_probe(rec.id, ok=False) is None
    assert registry.get(rec.id) is None


def test_readers_get_copies(clock):
    registry = Registry(clock=clock)
    rec = registry.register(_reg())
    registry.record_probe(rec.id, ok=True)

    snapshot = registry.first_healthy("users-service")
    snapshot.healthy = False
    snapshot.address = "evil:1"

    assert registry.first_healthy("users-service").address == "10.0.0.1:8081"


def test_services_map_groups_by_name(clock):
    registry = Registry(clock=clock)
    registry.register(_reg(name="users-service", address="10.0.0.1:1"))
    registry.register(_reg(name="products-service", address="10.0.0.2:1"))

    catalog = registry.services_map()
    assert set(catalog) == {"users-service", "products-service"}
    assert catalog["products-service"][0].address == "10.0.0.2:1"


def test_default_health_path_from_settings():
    registry = Registry.from_settings(Settings(default_health_path="/ping"))
    assert registry.register(_reg()).health_path == "/ping"
    assert registry.register(_reg(id="other", health_path="/status")).health_path == "/status"


@pytest.mark.parametrize("address", ["localhost", ":8080", "host:notaport", "host:0", "host:70000"])
def test_registration_rejects_bad_address(address):
    with pytest.raises(ValidationError):
        ServiceRegistration(name="users-service", address=address)


def test_registration_rejects_blank_name():
    with pytest.raises(ValidationError):
        ServiceRegistration(name="  ", address="h:1")
