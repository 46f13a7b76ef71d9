import json
from contextlib import asynccontextmanager

import httpx
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Monotonic clock the tests move by hand."""
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def streamed(status_code: int, *, json_body=None, content: bytes = b"", headers=None) -> httpx.Response:
    """Backend response that is streamed like a real transport's, not pre-read."""
    headers = list((headers or {}).items()) if isinstance(headers, dict) else list(headers or [])
    if json_body is not None:
        content = json.dumps(json_body).encode()
        headers.append(("content-type", "application/json"))
    headers.append(("content-length", str(len(content))))
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))


@asynccontextmanager
async def running(app):
    """Run an app's lifespan and hand back an in-process client for it."""
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test.local") as client:
            yield client
