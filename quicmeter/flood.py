"""
Latency probe and flood: the client half of the echo-length protocol.

Both take the stream as a pair of coroutine functions:

    write(data) -> int        raises StreamError on failure
    read(n) -> bytes          returns exactly n bytes, raises StreamError

so they run the same way against a QUIC stream or an in-memory fake.
"""
import asyncio
import logging
from dataclasses import dataclass

from quicmeter.errors import StreamError, TokenError, TransferError
from quicmeter.wire import MAX_CHUNK_SIZE, TOKEN_WIDTH, decode_token

logger = logging.getLogger(__name__)


@dataclass
class FloodResult:
    size: int
    sent: int
    received: int
    chunks: int


async def probe(write, read):
    """Send a single byte and wait for its token. The reply is not checked."""
    await write(b"\x00")
    await read(TOKEN_WIDTH)


async def flood(protocol, size, payload, write, read, chunk_size=MAX_CHUNK_SIZE, window=None):
    """
    Push size bytes of payload while draining acknowledgments.

    The sender and the receiver run as two tasks on the same stream. Each
    returns its own completion signal and both are awaited before returning.
    Raises TransferError unless both report success.

    With window set, the sender holds back while that many bytes are
    unacknowledged. A chunk is always allowed when nothing is outstanding.
    """
    if size < 1:
        raise ValueError(f"flood size must be positive, got {size}")
    if len(payload) < size:
        raise ValueError(f"payload holds {len(payload)} bytes, {size} requested")

    state = {"sent": 0, "received": 0, "chunks": 0, "receiving": True}
    acked = asyncio.Event()

    def held_back(offset, current):
        outstanding = offset - state["received"]
        return state["receiving"] and outstanding > 0 and outstanding + current > window

    async def send():
        left = size
        while left > 0:
            current = min(left, chunk_size)
            offset = state["sent"]
            if window is not None:
                while held_back(offset, current):
                    acked.clear()
                    await acked.wait()
            try:
                await write(payload[offset:offset + current])
            except (StreamError, OSError) as e:
                logger.error("%s: write failed after %d of %d bytes: %s", protocol, offset, size, e)
                return False
            state["sent"] += current
            state["chunks"] += 1
            left -= current
        return True

    async def receive():
        try:
            while state["received"] < size:
                try:
                    token = await read(TOKEN_WIDTH)
                    state["received"] += decode_token(token)
                except (StreamError, TokenError, OSError) as e:
                    logger.error("%s: read failed after %d of %d bytes: %s", protocol, state["received"], size, e)
                    return False
                acked.set()
        finally:
            state["receiving"] = False
            acked.set()
        if state["received"] != size:
            logger.error("%s: acknowledged %d bytes, expected %d", protocol, state["received"], size)
            return False
        return True

    sender = asyncio.ensure_future(send())
    receiver = asyncio.ensure_future(receive())
    try:
        send_ok, recv_ok = await asyncio.gather(sender, receiver)
    finally:
        for task in (sender, receiver):
            if not task.done():
                task.cancel()

    if send_ok and recv_ok:
        return FloodResult(size=size, sent=state["sent"], received=state["received"], chunks=state["chunks"])
    raise TransferError(protocol, size, sent=state["sent"], received=state["received"])
