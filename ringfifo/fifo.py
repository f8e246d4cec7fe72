"""
Fixed-capacity byte FIFO over caller-owned storage, modelled on the Linux kfifo.

parameter
    capacity: storage length, a power of 2
    write_cursor: total bytes ever pushed
    read_cursor: total bytes ever pulled
    state: access guard, UNLOCKED or LOCKED while a push/pull is in flight
function
    push(): copy bytes in, as many as fit
    pull(): copy bytes out, as many as are buffered
    used_size(): bytes buffered
    remaining_size(): bytes free
    is_empty() / is_full()
    reset(): drop buffered content
"""

import enum
import logging

from gevent.lock import BoundedSemaphore

from ringfifo.errors import BufferClosed, Busy, Empty, Full, InvalidCapacity, NullDest, NullSource

# largest power of 2 a u32 capacity can hold
MAX_CAPACITY = 1 << 31


class AccessState(enum.IntEnum):
    UNLOCKED = 0
    LOCKED = 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_capacity(capacity) -> bool:
    return _is_int(capacity) and 0 < capacity <= MAX_CAPACITY and capacity & (capacity - 1) == 0


def _byte_view(obj) -> memoryview:
    # TypeError: not a buffer at all, ValueError: a buffer we cannot copy flat
    with memoryview(obj) as raw:
        if not raw.c_contiguous:
            raise ValueError("buffer must be C-contiguous")
        return raw.cast("B")


def _transfer_length(length, available: int) -> int:
    if length is None:
        return available
    if not _is_int(length):
        raise TypeError(f"length must be an int, not {type(length).__name__}")
    if not (0 <= length <= available):
        raise ValueError(f"Invalid length: {length}, valid: 0 <= length <= {available}")
    return length


class RingBuffer:
    _storage: memoryview
    _capacity: int
    _mask: int
    _write_cursor: int
    _read_cursor: int
    _closed: bool
    _guard: BoundedSemaphore

    def __init__(self, capacity: int, storage):
        self._logger = logging.getLogger(f"{self.__class__.__name__}-{hex(id(self))}")
        if not is_valid_capacity(capacity):
            self._logger.debug(f"init failed, capacity {capacity!r} is not a power of 2")
            raise InvalidCapacity(capacity)

        view = _byte_view(storage)
        if view.readonly or len(view) < capacity:
            size, readonly = len(view), view.readonly
            view.release()
            if readonly:
                raise ValueError("storage must be writable")
            raise ValueError(f"storage too small: {size} < {capacity}")

        self._storage = view[:capacity]
        view.release()
        self._capacity = capacity
        self._mask = capacity - 1
        self._write_cursor = 0
        self._read_cursor = 0
        self._closed = False
        self._guard = BoundedSemaphore()
        self._logger.debug(f"init success, capacity {capacity}")

    def __repr__(self) -> str:
        if self._closed:
            return f"{self.__class__.__name__}(CLOSED)"
        return (
            f"{self.__class__.__name__}(capacity={self._capacity}, used={self.used_size()}, "
            f"write_cursor={self._write_cursor}, read_cursor={self._read_cursor}, state={self.state.name})"
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def write_cursor(self) -> int:
        return self._write_cursor

    @property
    def read_cursor(self) -> int:
        return self._read_cursor

    @property
    def state(self) -> AccessState:
        return AccessState.LOCKED if self._guard.locked() else AccessState.UNLOCKED

    @property
    def closed(self) -> bool:
        return self._closed

    def used_size(self) -> int:
        return self._write_cursor - self._read_cursor

    def remaining_size(self) -> int:
        return self._capacity - self.used_size()

    def is_empty(self) -> bool:
        return self._write_cursor == self._read_cursor

    def is_full(self) -> bool:
        return self.used_size() == self._capacity

    def __len__(self):
        return self.used_size()

    def push(self, source, length: int | None = None) -> int:
        """Copy up to `length` bytes of `source` into the FIFO.

        Returns the number of bytes stored, which is less than requested when
        the FIFO does not have room for all of them. The rest are dropped and
        the caller has to push the tail again.
        """
        self._check_closed()
        if not self._guard.acquire(blocking=False):
            raise self._rejected("push", Busy("push rejected, another operation is in progress"))
        try:
            try:
                src = _byte_view(source)
            except TypeError as e:
                raise self._rejected("push", NullSource("source must be a bytes-like object")) from e
            with src:
                length = _transfer_length(length, len(src))
                if self.is_full():
                    raise self._rejected("push", Full("fifo is full"))

                push_len = min(self.remaining_size(), length)
                offset = self._offset(self._write_cursor)
                first = min(push_len, self._capacity - offset)
                self._storage[offset : offset + first] = src[:first]
                self._storage[: push_len - first] = src[first:push_len]
                self._write_cursor += push_len
        finally:
            self._guard.release()

        self._logger.debug(f"push requested {length}, transferred {push_len}")
        return push_len

    def pull(self, dest, length: int | None = None) -> int:
        """Move up to `length` bytes from the FIFO into the start of `dest`."""
        self._check_closed()
        if not self._guard.acquire(blocking=False):
            raise self._rejected("pull", Busy("pull rejected, another operation is in progress"))
        try:
            try:
                dst = _byte_view(dest)
            except TypeError as e:
                raise self._rejected("pull", NullDest("dest must be a writable bytes-like object")) from e
            with dst:
                if dst.readonly:
                    raise self._rejected("pull", NullDest("dest is read-only"))
                length = _transfer_length(length, len(dst))
                if self.is_empty():
                    raise self._rejected("pull", Empty("fifo is empty"))

                pull_len = min(self.used_size(), length)
                offset = self._offset(self._read_cursor)
                first = min(pull_len, self._capacity - offset)
                dst[:first] = self._storage[offset : offset + first]
                dst[first:pull_len] = self._storage[: pull_len - first]
                self._read_cursor += pull_len
        finally:
            self._guard.release()

        self._logger.debug(f"pull requested {length}, transferred {pull_len}")
        return pull_len

    def reset(self) -> None:
        """Discard buffered content. Storage bytes are left as they are."""
        self._check_closed()
        if not self._guard.acquire(blocking=False):
            raise self._rejected("reset", Busy("reset rejected, another operation is in progress"))
        try:
            dropped = self.used_size()
            self._write_cursor = 0
            self._read_cursor = 0
        finally:
            self._guard.release()
        self._logger.debug(f"reset, dropped {dropped} bytes")

    def _offset(self, cursor: int) -> int:
        return cursor & self._mask

    def _check_closed(self) -> None:
        if self._closed:
            raise BufferClosed("Buffer is closed and cannot be used.")

    def _rejected(self, op: str, exc: Exception) -> Exception:
        self._logger.debug(f"{op} failed: {exc}")
        return exc

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            # hand the region back to its owner so it can be resized or unmapped
            self._storage.release()
