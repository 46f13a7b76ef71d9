"""Configuration for the API Gateway.

Provides strongly-typed settings using Pydantic and a loader from environment
variables with defaults suitable for local development.
"""

from __future__ import annotations

import os
from typing import Literal, Optional

import httpx
from pydantic import AnyUrl, BaseModel, Field, ValidationError, field_validator

from service_registry.models.schemas import split_address


class Settings(BaseModel):
    """Pydantic settings for the gateway."""
    route_prefix: str = "api"
    service_suffix: str = "-service"
    request_timeout_s: float = Field(default=30.0, gt=0)
    connect_timeout_s: float = Field(default=5.0, gt=0)
    # default strategy for names missing from static_services
    registry_mode: Literal["none", "embedded", "remote"] = "none"
    service_registry_url: Optional[AnyUrl] = None  # e.g. "http://localhost:7000"
    registry_timeout_s: float = Field(default=2.0, gt=0)
    # service name -> "host:port" or base URL
    static_services: dict[str, str] = Field(default_factory=dict)

    @field_validator("static_services")
    @classmethod
    def _addresses_usable(cls, v: dict[str, str]) -> dict[str, str]:
        for name, address in v.items():
            check_address(name, address)
        return v


def check_address(name: str, address: str) -> None:
    """Raise ValueError unless ``address`` is ``host:port`` or an http(s) base URL."""
    address = address.strip().rstrip("/")
    if "://" not in address:
        try:
            split_address(address)
        except ValueError as e:
            raise ValueError(f"{name}: {e}") from None
        return
    try:
        url = httpx.URL(address)
    except httpx.InvalidURL as e:
        raise ValueError(f"{name}: invalid URL {address!r}: {e}") from None
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"{name}: expected an http(s) URL, got {address!r}")


def parse_static_services(raw: str) -> dict[str, str]:
    """Parse ``name=address,name=address`` into a mapping."""
    services: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, address = item.partition("=")
        if not sep or not name.strip() or not address.strip():
            raise ValueError(f"expected name=address, got {item!r}")
        services[name.strip()] = address.strip()
    return services


def load_settings() -> Settings:
    """Load settings from environment variables and return a Settings object."""
    try:
        return Settings(
            route_prefix=os.getenv("ROUTE_PREFIX", "api"),
            service_suffix=os.getenv("SERVICE_SUFFIX", "-service"),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_S", "30.0")),
            connect_timeout_s=float(os.getenv("CONNECT_TIMEOUT_S", "5.0")),
            registry_mode=os.getenv("REGISTRY_MODE", "none"),
            service_registry_url=os.getenv("SERVICE_REGISTRY_URL") or None,
            registry_timeout_s=float(os.getenv("REGISTRY_TIMEOUT_S", "2.0")),
            static_services=parse_static_services(os.getenv("GATEWAY_SERVICES", "")),
        )
    except (ValidationError, ValueError) as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
