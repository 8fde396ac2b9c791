# QUIC goodput driver: latency probe plus duplicated floods over one stream per trial
import argparse
import asyncio
import logging
import sys
import time
from contextlib import AsyncExitStack, asynccontextmanager

from aioquic.asyncio import connect

from quicmeter import config
from quicmeter.config import ClientSettings
from quicmeter.errors import SetupError, StreamError, TransferError
from quicmeter.flood import flood, probe
from quicmeter.host_stats import HostStatsDelta, PsutilStatSource
from quicmeter.payload import PayloadPool, size_classes
from quicmeter.protocols.streams import MeterProtocol
from quicmeter.report import TrialReport, print_report
from quicmeter.tls import client_configuration

logger = logging.getLogger(__name__)


class MeterClientProtocol(MeterProtocol):
    async def open_stream(self, timeout=None):
        reader, writer = await self.create_stream()
        return self.wrap_stream(reader, writer, timeout=timeout)


class QuicConnectionFactory:
    """Dials a fresh QUIC connection per trial."""

    def __init__(self, settings: ClientSettings):
        self.settings = settings

    @asynccontextmanager
    async def connect(self):
        settings = self.settings
        configuration = client_configuration(settings.alpn, server_name=settings.host)
        async with AsyncExitStack() as stack:
            try:
                protocol = await stack.enter_async_context(connect(
                    settings.host,
                    settings.port,
                    configuration=configuration,
                    create_protocol=MeterClientProtocol,
                    wait_connected=False,
                ))
                # connect() only sends the Initial packet itself when it waits
                protocol.transmit()
                await asyncio.wait_for(protocol.wait_connected(), settings.handshake_timeout)
            except (OSError, asyncio.TimeoutError) as e:
                raise SetupError(
                    f"{settings.protocol_name}: cannot connect to {settings.host}:{settings.port}: {e!r}") from e
            yield protocol


async def run_trial(factory, settings: ClientSettings, pool: PayloadPool, size, stats=None) -> TrialReport:
    """
    Measure one payload size on a fresh connection.

    SetupError propagates. TransferError is raised when the probe or any of
    the duplicate floods fails.
    """
    name = settings.protocol_name
    before = stats.snapshot() if stats is not None else None
    payload = pool.for_size(size)

    async with factory.connect() as protocol:
        start = time.perf_counter()
        stream = await protocol.open_stream(timeout=settings.io_timeout)
        async with stream:
            setup_duration = time.perf_counter() - start
            try:
                await probe(stream.write, stream.read_exactly)
            except StreamError as e:
                logger.error("%s: latency probe failed: %s", name, e)
                raise TransferError(name, size) from e
            first_byte_duration = time.perf_counter() - start

            flood_start = time.perf_counter()
            for file_num in range(settings.files):
                result = await flood(name, size, payload, stream.write, stream.read_exactly,
                                     chunk_size=settings.chunk_size, window=settings.window)
                logger.debug("%s: file %d/%d of %d bytes done in %d chunks",
                             name, file_num + 1, settings.files, result.size, result.chunks)
            duration = time.perf_counter() - flood_start

    host_stats = None
    if stats is not None:
        host_stats = HostStatsDelta.between(before, stats.snapshot())
        logger.debug("%s: %d bytes: %s", name, size, host_stats)

    return TrialReport(
        protocol=name,
        environment=settings.environment,
        kind="Raw",
        files=settings.files,
        setup_duration=setup_duration,
        first_byte_duration=first_byte_duration,
        size=size,
        duration=duration,
        host_stats=host_stats,
    )


async def run_sample(factory, settings: ClientSettings, stats=None):
    """One pass over the doubling size sequence with a fresh payload pool."""
    pool = PayloadPool(settings.final_size)
    reports = []
    for size in size_classes(settings.initial_size, settings.final_size):
        try:
            report = await run_trial(factory, settings, pool, size, stats=stats)
        except TransferError as e:
            logger.error("%s", e)
            continue
        print_report(report)
        reports.append(report)
    return reports


async def run_campaign(settings: ClientSettings, factory=None, stats=None):
    if factory is None:
        factory = QuicConnectionFactory(settings)
    if stats is None:
        stats = PsutilStatSource()

    results = []
    for sample in range(settings.samples):
        print(f"Starting clients to reach {settings.host}...", flush=True)
        if settings.port <= 0:
            continue
        print(f"Testing {settings.protocol_name}...", flush=True)
        results.append(await run_sample(factory, settings, stats=stats))
    return results


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Measure QUIC goodput across doubling payload sizes.")
    parser.add_argument("--host", default=config.get_env("QUIC_HOST", "127.0.0.1"),
                        help="Host to connect")
    parser.add_argument("--env", default=config.get_env("TEST_ENVIRONMENT", "Local"),
                        help="Environment name used in reports")
    parser.add_argument("--quic", type=int, default=config.env_int("QUIC_PORT", config.DEFAULT_PORT),
                        help="QUIC port to connect (0 disables QUIC)")
    parser.add_argument("--samples", type=int, default=config.env_int("SAMPLE_SIZES", config.SAMPLE_SIZES),
                        help="Number of times each experiment is executed")
    parser.add_argument("--files", type=int, default=config.env_int("FILES_TO_SEND", config.FILES_TO_SEND),
                        help="Duplicate files sent over the same stream per trial")
    parser.add_argument("--initial-size", type=int,
                        default=config.env_int("INITIAL_MESSAGE_SIZE", config.INITIAL_MESSAGE_SIZE),
                        help="First payload size in bytes")
    parser.add_argument("--final-size", type=int,
                        default=config.env_int("FINAL_MESSAGE_SIZE", config.FINAL_MESSAGE_SIZE),
                        help="Largest payload size in bytes")
    parser.add_argument("--handshake-timeout", type=float,
                        default=config.env_float("HANDSHAKE_TIMEOUT", config.HANDSHAKE_TIMEOUT),
                        help="Seconds allowed for the QUIC handshake")
    parser.add_argument("--io-timeout", type=float, default=config.env_float("IO_TIMEOUT", None),
                        help="Seconds allowed for each stream read or write (default: unbounded)")
    parser.add_argument("--window", type=int, default=config.env_int("FLOOD_WINDOW", None),
                        help="Most unacknowledged bytes in flight per flood (default: unbounded)")
    parser.add_argument("--alpn", default=config.get_env("QUIC_ALPN", config.DEFAULT_ALPN),
                        help="ALPN protocol identifier")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = ClientSettings.from_args(args)
    try:
        asyncio.run(run_campaign(settings))
    except SetupError as e:
        logger.critical("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
