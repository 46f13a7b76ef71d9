"""Maps an inbound path to the backend service and the path it should see.

``/api/users/42`` -> ``("users-service", "/42")``
"""
from __future__ import annotations

from urllib.parse import unquote

from api_gateway.core.errors import MalformedPath


def parse_path(path: str, prefix: str = "api", suffix: str = "-service") -> tuple[str, str]:
    """Split ``/<prefix>/<token>/<rest...>`` into ``(token + suffix, "/" + rest)``.

    At least two segments must follow the prefix; the second may be empty, so
    ``/api/users/`` forwards to ``/``. ``path`` is the raw request path: the
    rest keeps its percent-escapes and only the service token is decoded.
    """
    parts = path.lstrip("/").split("/")
    if len(parts) < 3 or parts[0] != prefix:
        raise MalformedPath(f"expected /{prefix}/<service>/<resource>, got {path!r}")
    token = unquote(parts[1])
    if not token:
        raise MalformedPath(f"empty service name in {path!r}")
    return token + suffix, "/" + "/".join(parts[2:])
