# QUIC echo-length responder: answers every chunk with its 8-byte length token
import argparse
import asyncio
import functools
import logging

from aioquic.asyncio import serve
from aioquic.quic.events import HandshakeCompleted

from quicmeter import config
from quicmeter.config import ServerSettings
from quicmeter.echo import echo_lengths
from quicmeter.errors import SetupError
from quicmeter.protocols.streams import MeterProtocol
from quicmeter.tls import server_configuration

logger = logging.getLogger(__name__)


class EchoServerProtocol(MeterProtocol):
    """Serves each stream the peer opens with its own echo_lengths task."""

    def __init__(self, *args, io_timeout=None, **kwargs):
        kwargs["stream_handler"] = self._accept_stream
        super().__init__(*args, **kwargs)
        self.io_timeout = io_timeout
        self.remote_addr = None
        self._tasks = set()

    def datagram_received(self, data, addr):
        if self.remote_addr is None:
            self.remote_addr = addr
        super().datagram_received(data, addr)

    def quic_event_received(self, event):
        if isinstance(event, HandshakeCompleted):
            host, port = self.remote_addr[:2] if self.remote_addr else ("?", 0)
            print(f"Accepted Connection! {host}:{port}", flush=True)
        super().quic_event_received(event)

    def _accept_stream(self, reader, writer):
        stream = self.wrap_stream(reader, writer, timeout=self.io_timeout)
        task = asyncio.ensure_future(self._serve_stream(stream))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _serve_stream(self, stream):
        async with stream:
            total = await echo_lengths(stream)
        logger.debug("stream %s: got %d bytes", stream.stream_id, total)
        return total


async def run_server(settings: ServerSettings):
    configuration = server_configuration(settings.alpn, settings.certificate, settings.private_key)
    try:
        server = await serve(
            settings.host,
            settings.port,
            configuration=configuration,
            create_protocol=functools.partial(EchoServerProtocol, io_timeout=settings.io_timeout),
        )
    except OSError as e:
        raise SetupError(f"cannot listen on {settings.host}:{settings.port}: {e}") from e
    print(f"Started QUIC server! {settings.host}:{settings.port}", flush=True)
    return server


async def serve_forever(settings: ServerSettings):
    server = await run_server(settings)
    try:
        await asyncio.Future()  # Run forever
    finally:
        server.close()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="QUIC echo-length responder for quicmeter.")
    parser.add_argument("--host", default=config.get_env("QUIC_HOST", "0.0.0.0"), help="Host to bind")
    parser.add_argument("--quic", type=int, default=config.env_int("QUIC_PORT", config.DEFAULT_PORT),
                        help="QUIC port to listen")
    parser.add_argument("--certificate", default=config.get_env("QUIC_CERT"),
                        help="PEM certificate (default: ephemeral self-signed)")
    parser.add_argument("--private-key", default=config.get_env("QUIC_KEY"),
                        help="PEM private key matching --certificate")
    parser.add_argument("--alpn", default=config.get_env("QUIC_ALPN", config.DEFAULT_ALPN),
                        help="ALPN protocol identifier")
    parser.add_argument("--io-timeout", type=float, default=config.env_float("IO_TIMEOUT", None),
                        help="Seconds allowed for each stream read or write (default: unbounded)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("Starting server...", flush=True)
    asyncio.run(serve_forever(ServerSettings.from_args(args)))


if __name__ == "__main__":
    main()
