from fastapi import APIRouter, Request, Response
from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST

metrics_router = APIRouter()

# Standalone registry so the registry metrics stay apart from the gateway's
registry = CollectorRegistry()
SD_PROBES = Counter("sd_probes_total", "Health probes issued by the registry", ["result"], registry=registry)
SD_RECORDS = Gauge("sd_records", "Service records currently registered", registry=registry)


@metrics_router.get("/metrics")
async def metrics(request: Request):
    service_registry = getattr(request.app.state, "registry", None)
    SD_RECORDS.set(len(service_registry) if service_registry is not None else 0)
    data = generate_latest(registry)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
