import socket
import time
from typing import Optional

import httpx
import pytest
from attrs import define
from fastapi.testclient import TestClient

from workerbench.config import Variant
from workerbench.server.http import create_app


@define
class AppConfig:
    variant: Variant


def pytest_make_parametrize_id(config, val):
    """
    Generates more readable IDs for parametrized tests that use AppConfig
    values.
    """
    if isinstance(val, AppConfig):
        return val.variant.value


def uses_variant(variant):
    return pytest.mark.parametrize(
        "client", [AppConfig(variant=variant)], indirect=True
    )


@pytest.fixture
def client(request, tmp_path):
    app = create_app(request.param.variant, directory=str(tmp_path))
    with TestClient(app) as c:
        yield c


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def wait_for_http(url: str, timeout: float = 10.0) -> httpx.Response:
    deadline = time.monotonic() + timeout
    last_error: Optional[Exception] = None
    while time.monotonic() < deadline:
        try:
            return httpx.get(url, timeout=1.0)
        except httpx.TransportError as e:
            last_error = e
            time.sleep(0.05)
    raise AssertionError(f"{url} did not answer within {timeout}s: {last_error}")


@pytest.fixture
def free_port():
    return find_free_port()
