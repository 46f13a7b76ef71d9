"""Pydantic models used by the API Gateway."""
from __future__ import annotations

from typing import Optional

from fastapi import Request
from pydantic import BaseModel


def raw_path(req: Request) -> str:
    """Request path exactly as the client sent it, percent-escapes intact.

    ``req.url.path`` is already decoded, so an escaped ``%3F`` or ``%23`` would
    turn into a query or fragment delimiter once put back into a URL.
    """
    raw = req.scope.get("raw_path")
    if not raw:
        return req.url.path
    # some servers include the query string in raw_path
    return raw.split(b"?", 1)[0].decode("latin-1")


class RouteRequest(BaseModel):
    """Inbound request as the forwarder needs it; lives for one request."""

    method: str
    path: str
    query: str = ""
    headers: list[tuple[str, str]] = []  # keeps repeated headers
    body: bytes = b""
    client_host: Optional[str] = None
    scheme: str = "http"
    host: str = ""
    port: Optional[int] = None

    @classmethod
    async def from_request(cls, req: Request) -> "RouteRequest":
        return cls(
            method=req.method,
            path=raw_path(req),
            query=req.url.query,
            headers=list(req.headers.items()),
            body=await req.body(),
            client_host=req.client.host if req.client else None,
            scheme=req.url.scheme,
            host=req.headers.get("host", ""),
            port=req.url.port,
        )


class ResolvedTarget(BaseModel):
    """Where one request is sent. Not kept past the request."""

    service_name: str
    base_url: str
    forward_path: str

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.forward_path}"
