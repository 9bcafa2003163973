import hashlib
import os

import pytest
from fastapi.testclient import TestClient

from workerbench.config import Variant
from workerbench.server.http import HELLO_WORLD, create_app

from .conftest import uses_variant


@uses_variant(Variant.PLAIN)
def test_plain_returns_hello_world(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.text == HELLO_WORLD == "Hello World\n"
    assert resp.headers["content-type"] == "text/plain"


@uses_variant(Variant.PLAIN)
@pytest.mark.parametrize(
    "method",
    ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "PROPFIND", "PURGE"],
)
@pytest.mark.parametrize("path", ["/", "/anything", "/deeply/nested/path?q=1"])
def test_plain_answers_every_method_and_path(client, method, path):
    resp = client.request(method, path)

    assert resp.status_code == 200
    assert resp.text == "Hello World\n"


@uses_variant(Variant.PLAIN)
def test_plain_answers_head(client):
    resp = client.head("/")

    assert resp.status_code == 200


@uses_variant(Variant.JSON)
def test_json_returns_payload(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"

    body = resp.json()
    assert set(body) == {"value", "filepath", "checksum"}
    assert all(isinstance(v, str) for v in body.values())

    raw = bytes.fromhex(body["value"])
    assert len(raw) == 10240
    assert body["checksum"] == hashlib.sha256(raw).hexdigest()
    with open(body["filepath"], "rb") as fh:
        assert fh.read() == raw


@uses_variant(Variant.JSON)
@pytest.mark.parametrize(
    "method", ["GET", "POST", "DELETE", "TRACE", "PROPFIND", "PURGE"]
)
def test_json_answers_every_method(client, method):
    resp = client.request(method, "/some/path", content=b"ignored")

    assert resp.status_code == 200
    assert set(resp.json()) == {"value", "filepath", "checksum"}


@uses_variant(Variant.JSON)
def test_json_generates_a_fresh_payload_per_request(client):
    first = client.get("/").json()
    second = client.get("/").json()

    assert first["filepath"] != second["filepath"]
    assert first["value"] != second["value"]
    assert os.path.isfile(first["filepath"])
    assert os.path.isfile(second["filepath"])


@uses_variant(Variant.JSON)
def test_docs_routes_are_not_special(client):
    resp = client.get("/docs")

    assert resp.status_code == 200
    assert set(resp.json()) == {"value", "filepath", "checksum"}


def test_json_write_failure_is_a_bare_server_error(tmp_path):
    app = create_app(Variant.JSON, directory=str(tmp_path / "missing"))
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/")

    assert resp.status_code == 500
    assert os.listdir(tmp_path) == []
