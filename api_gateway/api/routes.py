"""API routes for the gateway.

Everything that is not one of the gateway's own endpoints goes through the
catch-all route into the Gateway pipeline.
"""
from __future__ import annotations

from fastapi import APIRouter, Request

from api_gateway.services.gateway import Gateway

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _get_gateway(request: Request) -> Gateway:
    """Gateway built in the application lifespan."""
    return request.app.state.gateway


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "OK"}


@router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def route_to_backend(full_path: str, request: Request):
    """
    Route /api/<service>/<resource...> to <service>-service:
      - parse the path into service name and forward path
      - resolve the service to a healthy endpoint
      - proxy the request there and stream the answer back
    """
    return await _get_gateway(request).handle(request)
