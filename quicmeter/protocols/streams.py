"""
Byte-stream view of aioquic streams used by both endpoints.
"""
import asyncio

from aioquic.asyncio.protocol import QuicConnectionProtocol
from aioquic.quic.events import ConnectionTerminated, StreamReset

from quicmeter.errors import StreamClosedError, StreamTimeoutError


class MeterProtocol(QuicConnectionProtocol):
    """
    Connection protocol that knows which of its streams are still usable.

    aioquic leaves readers blocked when a stream is reset, so wrapped
    streams are woken with end-of-stream on reset and on termination.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.terminated = False
        self._reset_streams = set()
        self._readers = {}

    def quic_event_received(self, event):
        if isinstance(event, ConnectionTerminated):
            self.terminated = True
            for reader in self._readers.values():
                reader.feed_eof()
        elif isinstance(event, StreamReset):
            self._reset_streams.add(event.stream_id)
            reader = self._readers.get(event.stream_id)
            if reader is not None:
                reader.feed_eof()
        super().quic_event_received(event)

    def stream_writable(self, stream_id):
        return not self.terminated and stream_id not in self._reset_streams

    def wrap_stream(self, reader, writer, timeout=None):
        stream = QuicStream(self, reader, writer, timeout=timeout)
        self._readers[stream.stream_id] = reader
        return stream

    def forget_stream(self, stream_id):
        self._readers.pop(stream_id, None)


class QuicStream:
    """
    One bidirectional QUIC stream.

    Every read and write fails with StreamClosedError once the stream or its
    connection is gone, and with StreamTimeoutError when timeout (seconds)
    is set and an operation outlives it.
    """

    def __init__(self, protocol, reader, writer, timeout=None):
        self._protocol = protocol
        self._reader = reader
        self._writer = writer
        self.timeout = timeout
        self.stream_id = writer.get_extra_info("stream_id")
        self.closed = False

    async def _bounded(self, aw, operation):
        if self.timeout is None:
            return await aw
        try:
            return await asyncio.wait_for(aw, self.timeout)
        except asyncio.TimeoutError:
            raise StreamTimeoutError(
                f"stream {self.stream_id}: {operation} timed out after {self.timeout}s") from None

    async def write(self, data):
        if self.closed:
            raise StreamClosedError(f"stream {self.stream_id} is closed")
        if not self._protocol.stream_writable(self.stream_id):
            raise StreamClosedError(f"stream {self.stream_id} was closed by the peer")
        try:
            self._writer.write(data)
        except ValueError as e:
            raise StreamClosedError(f"stream {self.stream_id}: {e}") from e
        await self._bounded(self._writer.drain(), "write")
        # drain() never blocks on aioquic streams: every write lands in the
        # send buffer at once, so a flood holds up to its whole size in memory
        # unless it runs with a window. Yield so the transmit callback and the
        # acknowledgment reader get to run.
        await asyncio.sleep(0)
        return len(data)

    async def read(self, n):
        data = await self._bounded(self._reader.read(n), "read")
        if not data:
            raise StreamClosedError(f"stream {self.stream_id} reached end of stream")
        return data

    async def read_exactly(self, n):
        try:
            return await self._bounded(self._reader.readexactly(n), "read")
        except asyncio.IncompleteReadError as e:
            raise StreamClosedError(
                f"stream {self.stream_id} ended after {len(e.partial)} of {n} bytes") from e

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._protocol.stream_writable(self.stream_id):
            self._writer.close()
        self._protocol.forget_stream(self.stream_id)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.close()
