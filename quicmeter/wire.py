"""
Acknowledgment tokens exchanged on a flood stream.

The responder answers every chunk it reads with the chunk length as ASCII
decimal, left-padded with '0' to exactly TOKEN_WIDTH bytes. No delimiter.
"""
from quicmeter.errors import TokenError

MAX_CHUNK_SIZE = 1048576  # 1 MiB
TOKEN_WIDTH = 8


def encode_token(n: int) -> bytes:
    if n < 0:
        raise TokenError(f"negative chunk length: {n}")
    digits = str(n).encode("ascii")
    if len(digits) > TOKEN_WIDTH:
        raise TokenError(f"chunk length {n} does not fit in {TOKEN_WIDTH} digits")
    return digits.rjust(TOKEN_WIDTH, b"0")


def decode_token(token: bytes) -> int:
    if len(token) != TOKEN_WIDTH:
        raise TokenError(f"expected {TOKEN_WIDTH} byte token, got {len(token)}")
    # Older responders pad with NUL instead of '0'
    digits = bytes(token).strip(b"\x00")
    if not digits.isdigit():
        raise TokenError(f"malformed token: {bytes(token)!r}")
    return int(digits)
