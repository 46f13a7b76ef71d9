"""Reverse-proxy utilities for the API Gateway.

Provides a streaming forwarder that proxies client requests to a resolved
backend and streams the upstream response back to the client.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import httpx
from fastapi.responses import StreamingResponse

from api_gateway.core.errors import UpstreamError, UpstreamUnreachable
from api_gateway.models.schemas import RouteRequest

log = logging.getLogger("API-Gateway.Proxy")

# RFC 9110 hop-by-hop headers (must not be forwarded)
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
}
# recomputed for the outbound request
_REQUEST_ONLY = {"host", "content-length"}

Headers = List[Tuple[str, str]]


def _strip_hop_headers(headers: Iterable[Tuple[str, str]], extra: frozenset = frozenset()) -> Headers:
    return [(k, v) for k, v in headers if k.lower() not in HOP_BY_HOP and k.lower() not in extra]


def _add_forwarded(req: RouteRequest, headers: Headers) -> Headers:
    present = {k.lower(): v for k, v in headers}
    client_ip = req.client_host or "unknown"
    prior = present.get("x-forwarded-for")
    headers = [(k, v) for k, v in headers if k.lower() != "x-forwarded-for"]
    headers.append(("x-forwarded-for", f"{prior}, {client_ip}" if prior else client_ip))
    if "x-forwarded-proto" not in present:
        headers.append(("x-forwarded-proto", req.scheme))
    if "x-forwarded-host" not in present:
        headers.append(("x-forwarded-host", req.host))
    if "x-forwarded-port" not in present:
        port = req.port or (443 if req.scheme == "https" else 80)
        headers.append(("x-forwarded-port", str(port)))
    return headers


def build_target_url(base_url: str, forward_path: str, query: str = "") -> str:
    """Join the pieces as-is; ``forward_path`` and ``query`` stay percent-encoded."""
    base = base_url[:-1] if base_url.endswith("/") else base_url
    path = forward_path if forward_path.startswith("/") else f"/{forward_path}"
    return f"{base}{path}?{query}" if query else f"{base}{path}"


async def forward(
    client: httpx.AsyncClient,
    req: RouteRequest,
    base_url: str,
    forward_path: str,
    *,
    service_name: Optional[str] = None,
) -> StreamingResponse:
    """Forward `req` to `{base_url}{forward_path}` and stream the response back.

    Raises UpstreamUnreachable when no connection could be made (or the
    address is not a usable URL) and
    UpstreamError when the backend answers 5xx or fails before its headers.
    A failure while streaming the body truncates the response.
    """
    target_url = build_target_url(base_url, forward_path, req.query)
    headers = _strip_hop_headers(req.headers, frozenset(_REQUEST_ONLY))
    headers = _add_forwarded(req, headers)
    if not any(k.lower() == "accept-encoding" for k, _ in headers):
        # body is relayed raw, so the caller must only get encodings it asked for
        headers.append(("accept-encoding", "identity"))

    try:
        upstream_request = client.build_request(req.method, target_url, headers=headers, content=req.body)
    except httpx.InvalidURL as e:
        log.warning("no usable URL for %s: %r", service_name or base_url, e)
        raise UpstreamUnreachable(f"{service_name or 'upstream'} has an invalid address", service_name) from e

    try:
        upstream_response = await client.send(upstream_request, stream=True)
    except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
        log.warning("connect to %s failed: %r", service_name or base_url, e)
        raise UpstreamUnreachable(f"could not connect to {service_name or 'upstream'}", service_name) from e
    except httpx.TransportError as e:
        log.warning("%s failed before responding: %r", service_name or base_url, e)
        raise UpstreamError(f"{service_name or 'upstream'} failed before responding", service_name) from e

    if upstream_response.status_code >= 500:
        await upstream_response.aclose()
        raise UpstreamError(
            f"{service_name or 'upstream'} answered {upstream_response.status_code}",
            service_name,
            upstream_status=upstream_response.status_code,
        )

    async def iter_upstream():
        try:
            async for chunk in upstream_response.aiter_raw():
                yield chunk
        except httpx.HTTPError as e:
            # status and headers are already on the wire; all we can do is stop
            log.warning("response from %s truncated mid-stream: %r", service_name or base_url, e)
        finally:
            await upstream_response.aclose()

    response = StreamingResponse(iter_upstream(), status_code=upstream_response.status_code)
    response.raw_headers.extend(
        (k.encode("latin-1"), v.encode("latin-1"))
        for k, v in _strip_hop_headers(upstream_response.headers.multi_items())
    )
    return response
