import os


def size_classes(initial, final):
    """Doubling sequence from initial up to and including final."""
    if initial < 1:
        raise ValueError(f"initial size must be positive, got {initial}")
    size = initial
    while size <= final:
        yield size
        size *= 2


class PayloadPool:
    """
    Random payloads, one per power of two up to the ceiling.

    Buffers are written once at construction and only read afterwards, so
    sender tasks may share them without locking.
    """

    def __init__(self, ceiling):
        if ceiling < 1:
            raise ValueError(f"ceiling must be positive, got {ceiling}")
        self.ceiling = ceiling
        self._buffers = {size: os.urandom(size) for size in size_classes(1, ceiling)}
        if ceiling not in self._buffers:
            self._buffers[ceiling] = os.urandom(ceiling)

    def __len__(self):
        return len(self._buffers)

    def sizes(self):
        return sorted(self._buffers)

    def for_size(self, size):
        """Smallest buffer holding at least size bytes."""
        if size < 1 or size > self.ceiling:
            raise ValueError(f"size {size} outside [1, {self.ceiling}]")
        klass = min(k for k in self._buffers if k >= size)
        return self._buffers[klass]
