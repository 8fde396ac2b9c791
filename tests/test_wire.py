import pytest

from quicmeter.errors import TokenError
from quicmeter.wire import MAX_CHUNK_SIZE, TOKEN_WIDTH, decode_token, encode_token


@pytest.mark.parametrize("n, token", [
    (1, b"00000001"),
    (1200, b"00001200"),
    (MAX_CHUNK_SIZE, b"01048576"),
    (0, b"00000000"),
    (99999999, b"99999999"),
])
def test_encode_token(n, token):
    assert encode_token(n) == token
    assert len(encode_token(n)) == TOKEN_WIDTH


@pytest.mark.parametrize("n", [1, 7, 1024, 65535, MAX_CHUNK_SIZE - 1, MAX_CHUNK_SIZE])
def test_token_round_trip(n):
    assert decode_token(encode_token(n)) == n


def test_decode_nul_padded_token():
    assert decode_token(b"\x00\x00\x00\x00\x001200") == 1200


@pytest.mark.parametrize("n", [-1, 100000000])
def test_encode_rejects_out_of_range(n):
    with pytest.raises(TokenError):
        encode_token(n)


@pytest.mark.parametrize("token", [b"0001", b"000000001", b"0000abcd", b"\x00" * 8, b"0000 12\n"])
def test_decode_rejects_malformed(token):
    with pytest.raises(ValueError):
        decode_token(token)
