import asyncio

import pytest

from mc3e.errors import TransportError
from mc3e.simulator import make_response
from mc3e.transport import Transport

ACCESS_ROUTE = bytes([0x00, 0xFF, 0xFF, 0x03, 0x00])


class FakeTransport(Transport):
    """In-memory transport: records writes, delivers frames on demand."""

    def __init__(self):
        super().__init__()
        self.opened = True
        self.sent = []
        self.fail_write = False

    async def open(self, host, port, timeout=5.0):
        self.opened = True

    def close(self):
        self.opened = False
        self._notify_error(TransportError("connection closed"))

    def is_open(self):
        return self.opened

    def write(self, data):
        if self.fail_write or not self.opened:
            raise TransportError("write failed")
        self.sent.append(data)

    def respond(self, data):
        self._notify_data(data)

    def drop(self, exc):
        self._notify_error(exc)


def word_response(values=(), code=0):
    data = b"".join(v.to_bytes(2, "little", signed=True) for v in values)
    return make_response(ACCESS_ROUTE, code, data)


async def wait_until(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.fixture
def transport():
    return FakeTransport()
