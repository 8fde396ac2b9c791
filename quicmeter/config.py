"""
Settings for the driver and the responder.

Command-line flags win; otherwise the environment variable named next to
each field is used, then the built-in default.
"""
import os
from dataclasses import dataclass
from typing import Optional

from quicmeter.wire import MAX_CHUNK_SIZE

INITIAL_MESSAGE_SIZE = 1  # 1 byte
FINAL_MESSAGE_SIZE = 67108864  # 64 MiB
FILES_TO_SEND = 10  # duplicate files sent over the same stream
SAMPLE_SIZES = 5  # number of times each experiment is executed
HANDSHAKE_TIMEOUT = 3.0
DEFAULT_PORT = 4242
DEFAULT_ALPN = "h3"


def get_env(key, default=None):
    value = os.environ.get(key)
    if value is None or value == '':
        return default
    return value


def env_int(key, default):
    value = get_env(key, default)
    return None if value is None else int(value)


def env_float(key, default):
    value = get_env(key, default)
    return None if value is None else float(value)


@dataclass
class ClientSettings:
    host: str = "127.0.0.1"  # QUIC_HOST
    environment: str = "Local"  # TEST_ENVIRONMENT
    port: int = DEFAULT_PORT  # QUIC_PORT
    samples: int = SAMPLE_SIZES  # SAMPLE_SIZES
    files: int = FILES_TO_SEND  # FILES_TO_SEND
    initial_size: int = INITIAL_MESSAGE_SIZE  # INITIAL_MESSAGE_SIZE
    final_size: int = FINAL_MESSAGE_SIZE  # FINAL_MESSAGE_SIZE
    chunk_size: int = MAX_CHUNK_SIZE
    handshake_timeout: float = HANDSHAKE_TIMEOUT  # HANDSHAKE_TIMEOUT
    io_timeout: Optional[float] = None  # IO_TIMEOUT
    window: Optional[int] = None  # FLOOD_WINDOW
    alpn: str = DEFAULT_ALPN  # QUIC_ALPN
    protocol_name: str = "QUIC"

    def __post_init__(self):
        if self.initial_size < 1:
            raise ValueError(f"initial size must be positive, got {self.initial_size}")
        if self.final_size < self.initial_size:
            raise ValueError(f"final size {self.final_size} below initial size {self.initial_size}")
        if self.files < 1:
            raise ValueError(f"files must be positive, got {self.files}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk size must be positive, got {self.chunk_size}")
        if self.window is not None and self.window < 1:
            raise ValueError(f"window must be positive, got {self.window}")

    @classmethod
    def from_args(cls, args):
        return cls(
            host=args.host,
            environment=args.env,
            port=args.quic,
            samples=args.samples,
            files=args.files,
            initial_size=args.initial_size,
            final_size=args.final_size,
            handshake_timeout=args.handshake_timeout,
            io_timeout=args.io_timeout,
            window=args.window,
            alpn=args.alpn,
        )


@dataclass
class ServerSettings:
    host: str = "0.0.0.0"  # QUIC_HOST
    port: int = DEFAULT_PORT  # QUIC_PORT
    certificate: Optional[str] = None  # QUIC_CERT
    private_key: Optional[str] = None  # QUIC_KEY
    alpn: str = DEFAULT_ALPN  # QUIC_ALPN
    io_timeout: Optional[float] = None  # IO_TIMEOUT

    def __post_init__(self):
        if (self.certificate is None) != (self.private_key is None):
            raise ValueError("certificate and private key must be given together")

    @classmethod
    def from_args(cls, args):
        return cls(
            host=args.host,
            port=args.quic,
            certificate=args.certificate,
            private_key=args.private_key,
            alpn=args.alpn,
            io_timeout=args.io_timeout,
        )
