class FifoError(Exception):
    pass


class InvalidCapacity(FifoError, ValueError):
    def __init__(self, capacity):
        super().__init__(f"Invalid capacity: {capacity!r}, must be a power of 2 and greater than 0")
        self.capacity = capacity


class Busy(FifoError):
    """Another push/pull holds the access guard. Retry later; no data was lost."""


class NullSource(FifoError, TypeError):
    pass


class NullDest(FifoError, TypeError):
    pass


class Full(FifoError):
    pass


class Empty(FifoError):
    pass


class BufferClosed(FifoError):
    pass


PushError = (Busy, NullSource, Full)
PullError = (Busy, NullDest, Empty)


class PoolExhausted(FifoError, BufferError):
    pass
