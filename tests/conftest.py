"""Pytest configuration for the LIFX Matter bridge tests."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

root_path = Path(__file__).resolve().parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))


def pytest_configure(config: pytest.Config) -> None:
    """Register markers used throughout the test suite."""

    config.addinivalue_line(
        "markers", "asyncio: mark coroutine tests to execute via asyncio loop"
    )


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute coroutine tests within a dedicated event loop."""

    test_function = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(test_function):
        return None

    arguments = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_function(**arguments))
    finally:
        asyncio.set_event_loop(None)
        loop.close()
    return True


class RecordingTransport:
    """Route LIFX API requests to a handler and keep every request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        """Store the response handler."""

        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        """Record ``request`` and delegate to the handler."""

        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        """Return an AsyncClient wired to this transport."""

        return httpx.AsyncClient(
            base_url="https://api.lifx.com", transport=httpx.MockTransport(self)
        )


LIGHT_PAYLOAD: dict[str, Any] = {
    "id": "d073d5000001",
    "uuid": "02ea5835-9dc2-4323-84f3-3e0b2e8a1f1d",
    "label": "Desk",
    "connected": True,
    "power": "on",
    "color": {"hue": 0, "saturation": 0, "kelvin": 4000},
    "brightness": 0.5,
}


@pytest.fixture
def light_payload() -> dict[str, Any]:
    """Return a copy of a typical LIFX light object."""

    return {**LIGHT_PAYLOAD, "color": dict(LIGHT_PAYLOAD["color"])}


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Return a factory for recording transports."""

    return RecordingTransport
