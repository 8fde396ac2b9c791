import logging

from quicmeter.errors import StreamError
from quicmeter.wire import MAX_CHUNK_SIZE, encode_token

logger = logging.getLogger(__name__)


async def echo_lengths(stream, chunk_size=MAX_CHUNK_SIZE):
    """
    Answer every chunk read from stream with its length token.

    Runs until the stream ends or fails and returns the number of bytes
    read. A read failure, peer FIN included, is the normal end of a
    trial. A failed reply ends this stream only.
    """
    total = 0
    while True:
        try:
            data = await stream.read(chunk_size)
        except StreamError as e:
            logger.debug("stream %s ended after %d bytes: %s", stream.stream_id, total, e)
            return total

        try:
            await stream.write(encode_token(len(data)))
        except StreamError as e:
            logger.warning("stream %s: reply failed after %d bytes: %s", stream.stream_id, total, e)
            return total

        total += len(data)
