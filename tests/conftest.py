import socket

import pytest

from .fakes import FakeConnectionFactory, FakeStatSource


@pytest.fixture
def fake_factory():
    return FakeConnectionFactory


@pytest.fixture
def stat_source():
    return FakeStatSource()


@pytest.fixture
def free_udp_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
