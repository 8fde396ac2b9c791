class QuicMeterError(Exception):
    pass


class SetupError(QuicMeterError):
    """Dial, handshake or bind failure. Fatal to the driver."""


class TransferError(QuicMeterError):
    """A flood did not finish. Local to one trial."""

    def __init__(self, protocol, size, sent=0, received=0):
        super().__init__(f"{protocol}: {size} did not finish (sent {sent}, acknowledged {received})")
        self.protocol = protocol
        self.size = size
        self.sent = sent
        self.received = received


class StreamError(QuicMeterError):
    pass


class StreamClosedError(StreamError):
    pass


class StreamTimeoutError(StreamError):
    pass


class TokenError(QuicMeterError, ValueError):
    pass
