"""Tests for request serialization, timeouts and late-response handling."""

import asyncio
import logging

import pytest

from mc3e.client import ProtocolClient
from mc3e.errors import (
    MalformedFrameError,
    ProtocolStatusError,
    TimeoutError,
    TransportError,
    ValueOutOfRangeError,
)
from mc3e.scheduler import SchedulerState

from conftest import word_response, wait_until


def make_client(transport, timeout=1.0, drain_timeout=None):
    return ProtocolClient(timeout=timeout, drain_timeout=drain_timeout, transport=transport)


def test_single_read(transport):
    async def scenario():
        client = make_client(transport)
        task = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: transport.sent)
        assert client.scheduler.state is SchedulerState.AWAITING_RESPONSE
        transport.respond(word_response([10]))
        result = await task
        assert client.scheduler.state is SchedulerState.IDLE
        assert client.scheduler.pending is None
        return result

    assert asyncio.run(scenario()) == [10]


def test_concurrent_reads_are_serialized_in_issue_order(transport):
    async def scenario():
        client = make_client(transport)
        first = asyncio.create_task(client.read_words("D0", 1))
        second = asyncio.create_task(client.read_words("D1", 1))
        await wait_until(lambda: transport.sent)
        await asyncio.sleep(0.02)
        # second call waits for the first response before sending
        assert len(transport.sent) == 1

        transport.respond(word_response([111]))
        await wait_until(lambda: len(transport.sent) == 2)
        assert transport.sent[1][15:18] == b"\x01\x00\x00"
        transport.respond(word_response([222]))
        return await first, await second

    assert asyncio.run(scenario()) == ([111], [222])


def test_many_callers_fifo(transport):
    async def scenario():
        client = make_client(transport)
        tasks = [asyncio.create_task(client.read_words(f"D{i}", 1)) for i in range(5)]
        for i in range(5):
            await wait_until(lambda: len(transport.sent) == i + 1)
            assert int.from_bytes(transport.sent[i][15:18], "little") == i
            transport.respond(word_response([i * 10]))
        return [await task for task in tasks]

    assert asyncio.run(scenario()) == [[0], [10], [20], [30], [40]]


def test_late_response_is_not_given_to_next_call(transport):
    async def scenario():
        client = make_client(transport, timeout=0.05, drain_timeout=2.0)
        first = asyncio.create_task(client.read_words("D0", 1))
        second = asyncio.create_task(client.read_words("D1", 1))

        with pytest.raises(TimeoutError):
            await first
        assert client.scheduler.state is SchedulerState.DRAINING
        assert len(transport.sent) == 1

        # late frame for the timed-out call
        transport.respond(word_response([111]))
        await wait_until(lambda: len(transport.sent) == 2)
        transport.respond(word_response([222]))
        return await second

    assert asyncio.run(scenario()) == [222]


def test_drain_window_expiry_releases_slot(transport):
    async def scenario():
        client = make_client(transport, timeout=0.05, drain_timeout=0.15)
        first = asyncio.create_task(client.read_words("D0", 1))
        second = asyncio.create_task(client.read_words("D1", 1))

        with pytest.raises(TimeoutError):
            await first
        await wait_until(lambda: len(transport.sent) == 2)
        transport.respond(word_response([5]))
        return await second

    assert asyncio.run(scenario()) == [5]


def test_zero_drain_timeout_releases_immediately(transport):
    async def scenario():
        client = make_client(transport, timeout=0.05, drain_timeout=0)
        with pytest.raises(TimeoutError):
            await client.read_words("D0", 1)
        assert client.scheduler.state is SchedulerState.IDLE
        assert client.scheduler.pending is None

        # frame arriving while idle is dropped
        transport.respond(word_response([1]))
        task = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: len(transport.sent) == 2)
        transport.respond(word_response([2]))
        return await task

    assert asyncio.run(scenario()) == [2]


def test_unsolicited_frame_dropped(transport, caplog):
    caplog.set_level(logging.WARNING, logger="mc3e.scheduler")

    async def scenario():
        client = make_client(transport)
        transport.respond(word_response([99]))
        assert client.scheduler.state is SchedulerState.IDLE

    asyncio.run(scenario())
    assert any("破棄" in record.message for record in caplog.records)


def test_protocol_status_error(transport):
    async def scenario():
        client = make_client(transport)
        task = asyncio.create_task(client.write_words("D0", [1]))
        await wait_until(lambda: transport.sent)
        transport.respond(word_response(code=0xC051))
        with pytest.raises(ProtocolStatusError) as exc_info:
            await task
        assert client.scheduler.state is SchedulerState.IDLE
        return exc_info.value

    error = asyncio.run(scenario())
    assert error.errorcode == 0xC051
    assert error.errorcode_hex == "0xC051"


def test_malformed_frame_fails_call(transport):
    async def scenario():
        client = make_client(transport)
        task = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: transport.sent)
        transport.respond(b"\xd0\x00\x00")
        with pytest.raises(MalformedFrameError):
            await task
        assert client.scheduler.pending is None

    asyncio.run(scenario())


def test_length_mismatch_is_reported_but_not_fatal(transport, caplog):
    caplog.set_level(logging.WARNING, logger="mc3e.scheduler")

    async def scenario():
        client = make_client(transport)
        task = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: transport.sent)
        frame = bytearray(word_response([7]))
        frame[7] = 0x10
        transport.respond(bytes(frame))
        return await task

    assert asyncio.run(scenario()) == [7]
    assert any("データ長不一致" in record.message for record in caplog.records)


def test_short_read_is_reported_but_not_fatal(transport, caplog):
    caplog.set_level(logging.WARNING, logger="mc3e.scheduler")

    async def scenario():
        client = make_client(transport)
        task = asyncio.create_task(client.read_words("D0", 3))
        await wait_until(lambda: transport.sent)
        transport.respond(word_response([1, 2]))
        return await task

    assert asyncio.run(scenario()) == [1, 2]
    assert any("読出し点数不一致" in record.message for record in caplog.records)


def test_transport_error_fails_pending_call(transport):
    async def scenario():
        client = make_client(transport)
        first = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: transport.sent)
        transport.drop(ConnectionResetError("reset by peer"))
        with pytest.raises(TransportError):
            await first
        assert client.scheduler.state is SchedulerState.IDLE

        second = asyncio.create_task(client.read_words("D0", 1))
        await wait_until(lambda: len(transport.sent) == 2)
        transport.respond(word_response([3]))
        return await second

    assert asyncio.run(scenario()) == [3]


def test_write_failure_releases_slot(transport):
    async def scenario():
        client = make_client(transport)
        transport.fail_write = True
        with pytest.raises(TransportError):
            await client.read_words("D0", 1)
        assert client.scheduler.state is SchedulerState.IDLE
        assert client.scheduler.pending is None

    asyncio.run(scenario())


def test_encoding_error_does_not_touch_scheduler(transport):
    async def scenario():
        client = make_client(transport)
        with pytest.raises(ValueOutOfRangeError):
            await client.read_words("D70000", 1)
        with pytest.raises(ValueOutOfRangeError):
            await client.write_words("D0", [40000])
        assert transport.sent == []
        assert client.scheduler.state is SchedulerState.IDLE
        assert client.scheduler.pending is None

    asyncio.run(scenario())


def test_close_while_draining_releases_slot(transport):
    async def scenario():
        client = make_client(transport, timeout=0.05, drain_timeout=5.0)
        with pytest.raises(TimeoutError):
            await client.read_words("D0", 1)
        assert client.scheduler.state is SchedulerState.DRAINING
        client.close()
        await wait_until(lambda: client.scheduler.state is SchedulerState.IDLE)

    asyncio.run(scenario())
