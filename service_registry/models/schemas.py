"""Pydantic models for the Service Registry."""
from pydantic import BaseModel, field_validator
from typing import Optional


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts, raising ValueError when malformed."""
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must be host:port, got {address!r}")
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise ValueError(f"port out of range in {address!r}")
    return host, port_num


class ServiceRegistration(BaseModel):
    """Input model a backend sends to register itself."""
    name: str
    address: str  # host:port
    id: Optional[str] = None
    health_path: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v

    @field_validator("address")
    @classmethod
    def _address_is_host_port(cls, v: str) -> str:
        split_address(v)
        return v

    def record_id(self) -> str:
        """Explicit id, or ``<name>-<host>-<port>`` when none was given."""
        if self.id:
            return self.id
        host, port = split_address(self.address)
        return f"{self.name}-{host}-{port}"


class ServiceRecord(BaseModel):
    """A registered backend instance with its probe state."""
    id: str
    name: str
    address: str
    health_path: str = "/health"
    healthy: bool = False
    consecutive_failures: int = 0
    last_checked: Optional[float] = None  # monotonic seconds of the last probe

    @property
    def base_url(self) -> str:
        return f"http://{self.address}"

    @property
    def health_url(self) -> str:
        path = self.health_path if self.health_path.startswith("/") else f"/{self.health_path}"
        return f"{self.base_url}{path}"
