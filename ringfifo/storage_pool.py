import logging
from contextlib import contextmanager

from gevent.lock import BoundedSemaphore
from gevent.queue import SimpleQueue

from ringfifo.errors import InvalidCapacity, PoolExhausted
from ringfifo.fifo import RingBuffer, is_valid_capacity

DEFAULT_PAGE_SIZE = 1 << 12
DEFAULT_PAGE_COUNT = 16


class StoragePool:
    """Pre-allocated pages to back RingBuffers, so nothing is allocated while running.

    Pages are only handed out wrapped in a RingBuffer, which is closed before
    its page is erased and reused.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, page_count: int = DEFAULT_PAGE_COUNT):
        self._logger = logging.getLogger(f"{self.__class__.__name__}-{hex(id(self))}")
        if not is_valid_capacity(page_size):
            raise InvalidCapacity(page_size)
        if page_count < 0:
            raise ValueError(f"Invalid page count: {page_count}")
        self._page_size = page_size
        self._page_count = page_count
        self._lock = BoundedSemaphore()
        self._free_pages = SimpleQueue()
        for i in range(page_count):
            self._free_pages.put(i)
        self._memory = memoryview(bytearray(self._page_size * self._page_count))
        self._eraser = bytes(self._page_size)

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def page_count(self) -> int:
        return self._page_count

    def free_pages(self) -> int:
        return self._free_pages.qsize()

    @contextmanager
    def fifo(self):
        page_id = self._take()
        fifo = None
        try:
            with self._memory[self._span(page_id)] as page:
                fifo = RingBuffer(self._page_size, page)
            yield fifo
        finally:
            if fifo is not None:
                fifo.close()
            self._give_back(page_id)

    def _span(self, page_id: int) -> slice:
        head = page_id * self._page_size
        return slice(head, head + self._page_size)

    def _take(self) -> int:
        with self._lock:
            if self._free_pages.empty():
                self._logger.debug(f"exhausted, all {self._page_count} pages in use")
                raise PoolExhausted(f"pool exhausted, all {self._page_count} pages in use")
            page_id = self._free_pages.get()
            self._logger.debug(f"page {page_id} taken, free: {self._free_pages.qsize()}")
            return page_id

    def _give_back(self, page_id: int) -> None:
        with self._lock:
            self._memory[self._span(page_id)] = self._eraser
            self._free_pages.put(page_id)
            self._logger.debug(f"page {page_id} released, free: {self._free_pages.qsize()}")
