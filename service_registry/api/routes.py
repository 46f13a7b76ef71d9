"""Registration API of the Service Registry.

Backends register themselves on startup and deregister on shutdown; the
gateway lists the healthy endpoints of a service name.
"""
from logging import getLogger
from typing import Dict, List

from fastapi import APIRouter, HTTPException, Request

from service_registry.models.schemas import ServiceRecord, ServiceRegistration
from service_registry.services.registry import Registry

log = getLogger("Service-Registry.API")
router = APIRouter()


def _get_registry(request: Request) -> Registry:
    """Registry owned by the running app (set up in the app factory)."""
    return request.app.state.registry


@router.post("/services", response_model=ServiceRecord)
async def register_service(reg: ServiceRegistration, request: Request):
    """Create or update a record. It becomes routable after its first passing probe."""
    return _get_registry(request).register(reg)


@router.delete("/services/{service_id}")
async def deregister_service(service_id: str, request: Request):
    if not _get_registry(request).deregister(service_id):
        raise HTTPException(404, detail="service instance not found")
    return {"ok": True}


@router.get("/services/{name}/endpoints", response_model=List[ServiceRecord])
async def list_endpoints(name: str, request: Request, healthy: bool = True):
    """Records for ``name`` in registration order; 404 if the name was never registered."""
    registry = _get_registry(request)
    if not registry.is_known(name):
        raise HTTPException(404, detail=f"unknown service {name}")
    return registry.list_by_name(name, healthy_only=healthy)


@router.get("/services-map", response_model=Dict[str, List[ServiceRecord]])
async def services_map(request: Request):
    return _get_registry(request).services_map()
