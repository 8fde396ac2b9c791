import asyncio

import pytest

from quicmeter.errors import StreamClosedError, TransferError
from quicmeter.flood import flood, probe
from quicmeter.wire import MAX_CHUNK_SIZE, encode_token

from .fakes import FakeEchoStream, ScriptedStream


def run_flood(size, stream=None, payload=None, **kwargs):
    async def scenario():
        s = stream() if stream is not None else FakeEchoStream()
        data = payload if payload is not None else bytes(range(256)) * (size // 256 + 1)
        try:
            result = await flood("QUIC", size, data, s.write, s.read_exactly, **kwargs)
        except TransferError as e:
            return s, e
        return s, result

    return asyncio.run(scenario())


@pytest.mark.parametrize("exponent", range(0, 23))
def test_power_of_two_sizes_fully_acknowledged(exponent):
    size = 2 ** exponent
    stream, result = run_flood(size)
    assert result.sent == size
    assert result.received == size
    assert sum(len(w) for w in stream.writes) == size


@pytest.mark.parametrize("size, chunks", [
    (1, [1]),
    (MAX_CHUNK_SIZE, [MAX_CHUNK_SIZE]),
    (MAX_CHUNK_SIZE + 1, [MAX_CHUNK_SIZE, 1]),
    (2 * MAX_CHUNK_SIZE + 1, [MAX_CHUNK_SIZE, MAX_CHUNK_SIZE, 1]),
])
def test_chunk_boundaries(size, chunks):
    stream, result = run_flood(size)
    assert [len(w) for w in stream.writes] == chunks
    assert result.chunks == len(chunks)


def test_single_byte_scenario():
    stream, result = run_flood(1)
    assert stream.writes == [bytes([0])]
    assert result.received == 1


def test_writes_walk_the_payload():
    payload = bytes(i % 251 for i in range(2 * MAX_CHUNK_SIZE + 1))
    stream, result = run_flood(len(payload), payload=payload)
    assert b"".join(stream.writes) == payload


def test_tokens_from_responder_scenario():
    size = 2 * MAX_CHUNK_SIZE + 1
    replies = [b"01048576", b"01048576", b"00000001"]
    stream, result = run_flood(size, stream=lambda: ScriptedStream(replies=replies))
    assert [len(w) for w in stream.writes] == [MAX_CHUNK_SIZE, MAX_CHUNK_SIZE, 1]
    assert result.received == size


def test_acknowledgments_in_different_cadence():
    size = 3000
    replies = [encode_token(1200), encode_token(1200), encode_token(600)]
    stream, result = run_flood(size, stream=lambda: ScriptedStream(replies=replies), chunk_size=1000)
    assert len(stream.writes) == 3
    assert result.received == size


def test_peer_close_mid_transfer_fails():
    size = 2 * MAX_CHUNK_SIZE + 1
    stream, error = run_flood(size, stream=lambda: FakeEchoStream(close_after_writes=1))
    assert isinstance(error, TransferError)
    assert error.protocol == "QUIC"
    assert error.size == size
    assert error.sent == MAX_CHUNK_SIZE
    assert "QUIC" in str(error) and str(size) in str(error)


def test_sender_failure_fails_even_if_receiver_finished():
    size = 2 * MAX_CHUNK_SIZE
    stream, error = run_flood(size, stream=lambda: ScriptedStream(replies=[encode_token(size)], fail_write_at=1))
    assert isinstance(error, TransferError)
    assert error.received == size
    assert error.sent == MAX_CHUNK_SIZE


def test_receiver_failure_fails_even_if_sender_finished():
    stream, error = run_flood(10, stream=lambda: ScriptedStream(replies=[encode_token(4)]))
    assert isinstance(error, TransferError)
    assert error.sent == 10
    assert error.received == 4


def test_malformed_token_fails():
    stream, error = run_flood(10, stream=lambda: ScriptedStream(replies=[b"garbage!"]))
    assert isinstance(error, TransferError)


def test_over_acknowledgment_fails():
    stream, error = run_flood(10, stream=lambda: ScriptedStream(replies=[encode_token(11)]))
    assert isinstance(error, TransferError)
    assert error.received == 11


def test_repeated_runs_are_independent():
    outcomes = [run_flood(MAX_CHUNK_SIZE + 1)[1] for _ in range(2)]
    assert outcomes[0] == outcomes[1]

    failures = [run_flood(8, stream=lambda: ScriptedStream(fail_write_at=0))[1] for _ in range(2)]
    assert all(isinstance(f, TransferError) for f in failures)
    assert (failures[0].sent, failures[0].received) == (failures[1].sent, failures[1].received)


def test_flood_rejects_short_payload():
    with pytest.raises(ValueError):
        asyncio.run(flood("QUIC", 10, b"123", None, None))


def test_probe_sends_one_byte_and_reads_token():
    async def scenario():
        stream = FakeEchoStream()
        await probe(stream.write, stream.read_exactly)
        return stream

    stream = asyncio.run(scenario())
    assert stream.writes == [b"\x00"]


def test_probe_surfaces_read_failure():
    async def scenario():
        stream = ScriptedStream(replies=[])
        await probe(stream.write, stream.read_exactly)

    with pytest.raises(StreamClosedError):
        asyncio.run(scenario())


def test_probe_surfaces_write_failure():
    async def scenario():
        stream = ScriptedStream(replies=[b"00000001"], fail_write_at=0)
        await probe(stream.write, stream.read_exactly)

    with pytest.raises(StreamClosedError):
        asyncio.run(scenario())


class WindowedEchoStream(FakeEchoStream):
    """Echo stream that records the most bytes ever written but unacknowledged."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.acknowledged = 0
        self.peak_outstanding = 0

    async def write(self, data):
        outstanding = sum(len(w) for w in self.writes) - self.acknowledged + len(data)
        self.peak_outstanding = max(self.peak_outstanding, outstanding)
        return await super().write(data)

    async def read_exactly(self, n):
        token = await super().read_exactly(n)
        self.acknowledged += int(token)
        return token


def test_window_bounds_unacknowledged_bytes():
    stream, result = run_flood(10000, stream=WindowedEchoStream, chunk_size=100, window=1000)
    assert result.received == 10000
    assert stream.peak_outstanding <= 1000


def test_window_smaller_than_a_chunk_still_progresses():
    stream, result = run_flood(1000, stream=WindowedEchoStream, chunk_size=400, window=100)
    assert result.received == 1000
    assert stream.peak_outstanding == 400


def test_os_error_on_write_is_a_transfer_error():
    class ResettingStream(FakeEchoStream):
        async def write(self, data):
            if self.writes:
                raise ConnectionResetError("connection reset by peer")
            return await super().write(data)

    stream, error = run_flood(2 * MAX_CHUNK_SIZE, stream=ResettingStream)
    assert isinstance(error, TransferError)
    assert error.sent == MAX_CHUNK_SIZE


def test_unexpected_failure_cancels_the_other_task():
    cancelled = []

    async def write(data):
        raise RuntimeError("boom")

    async def read(n):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(n)
            raise

    async def scenario():
        with pytest.raises(RuntimeError):
            await flood("QUIC", 10, bytes(10), write, read)
        for _ in range(3):
            await asyncio.sleep(0)

    asyncio.run(scenario())
    assert cancelled == [8]
