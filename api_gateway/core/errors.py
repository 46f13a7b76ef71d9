"""Failure kinds of the gateway and the HTTP status each one maps to."""
from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """Base for every failure the gateway turns into an error response."""

    status_code = 500

    def __init__(self, detail: str, service: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.service = service

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        body = {"error": self.kind, "detail": self.detail}
        if self.service:
            body["service"] = self.service
        return body


class MalformedPath(GatewayError):
    status_code = 400


class UnknownService(GatewayError):
    status_code = 503


class ServiceUnavailable(GatewayError):
    status_code = 503


class UpstreamUnreachable(GatewayError):
    """Connection to the backend could not be established."""
    status_code = 503


class UpstreamError(GatewayError):
    """Backend answered 5xx, or broke the exchange before sending headers."""
    status_code = 502

    def __init__(self, detail: str, service: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(detail, service)
        self.upstream_status = upstream_status

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.upstream_status is not None:
            body["upstream_status"] = self.upstream_status
        return body
