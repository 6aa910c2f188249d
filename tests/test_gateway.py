"""Tests for the REST gateway with an in-memory client."""

import asyncio

import pytest
from fastapi.testclient import TestClient

import mc3e
from gateway import create_app
from mc3e import PLCConnectionConfig
from mc3e.device import parse_device
from mc3e.errors import ProtocolStatusError, TimeoutError, TransportError
from plc_operations import PLCOperations
from version import format_version_string


class FakeClient:
    """ProtocolClient stand-in that returns canned values or raises."""

    def __init__(self):
        self.opened = False
        self.error = None
        self.writes = []

    def is_open(self):
        return self.opened

    async def open(self, host, port, connect_timeout=5.0):
        if self.error:
            raise self.error
        self.opened = True

    def close(self):
        self.opened = False

    async def read_words(self, address, count):
        parse_device(address)
        if self.error:
            raise self.error
        return list(range(count))

    async def write_words(self, address, values):
        parse_device(address)
        if self.error:
            raise self.error
        self.writes.append((address, list(values)))


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def client(fake_client):
    ops = PLCOperations(PLCConnectionConfig(ip="10.0.0.1", port=5511), client=fake_client)
    return TestClient(create_app(plc_ops=ops))


def test_read(client):
    response = client.post("/api/read", json={"device": "D100", "count": 3})
    assert response.status_code == 200
    assert response.json() == {"device": "D100", "values": [0, 1, 2]}


def test_read_get(client):
    response = client.get("/api/read/D0", params={"count": 2})
    assert response.status_code == 200
    assert response.json()["values"] == [0, 1]


def test_write(client, fake_client):
    response = client.post("/api/write", json={"device": "D10", "values": [1, -2, 3]})
    assert response.status_code == 200
    assert response.json() == {"device": "D10", "written": 3}
    assert fake_client.writes == [("D10", [1, -2, 3])]


def test_unsupported_device_is_bad_request(client):
    response = client.post("/api/read", json={"device": "A7"})
    assert response.status_code == 400


def test_protocol_status_error(client, fake_client):
    fake_client.error = ProtocolStatusError(0xC051)
    response = client.post("/api/read", json={"device": "D0"})
    assert response.status_code == 502
    assert response.json()["detail"]["errorcode"] == "0xC051"


def test_timeout(client, fake_client):
    fake_client.error = TimeoutError(2.0)
    response = client.post("/api/write", json={"device": "D0", "values": [1]})
    assert response.status_code == 504


def test_transport_error(client, fake_client):
    fake_client.error = TransportError("connection refused")
    response = client.post("/api/read", json={"device": "D0"})
    assert response.status_code == 503


def test_connect_and_status(client, fake_client):
    status = client.get("/api/status").json()
    assert status["connected"] is False
    assert "D" in status["supported_devices"]
    assert "10.0.0.1:5511" in status["plc"]

    response = client.post("/api/connect")
    assert response.status_code == 200
    assert response.json()["connected"] is True


def test_connect_failure(client, fake_client):
    fake_client.error = TransportError("connection refused")
    assert client.post("/api/connect").status_code == 503


def test_version(client):
    info = client.get("/api/version").json()
    assert info["version"] == mc3e.__version__
    assert set(info["libraries"]) == {"fastapi", "pydantic", "uvicorn"}
    assert info["plc_models"] == ["Q", "iQ-R"]


def test_version_banner():
    text = format_version_string()
    assert f"v{mc3e.__version__}" in text
    assert "iQ-R" in text


def test_operations_helpers(fake_client):
    ops = PLCOperations(PLCConnectionConfig(), client=fake_client)
    assert ops.validate_device_spec("D100")
    assert not ops.validate_device_spec("X1")

    result = asyncio.run(ops.test_connection())
    assert result["connected"] is True
    assert result["test_read_value"] == 0

    fake_client.error = TimeoutError(2.0)
    result = asyncio.run(ops.test_connection())
    assert result["connected"] is False
    assert "timeout" in result["error"]
