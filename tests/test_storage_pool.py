import unittest

from ringfifo.errors import BufferClosed, InvalidCapacity, PoolExhausted
from ringfifo.storage_pool import StoragePool


class TestStoragePool(unittest.TestCase):
    def test_page_size_must_be_power_of_two(self):
        with self.assertRaises(InvalidCapacity):
            StoragePool(100, 4)

    def test_fifo_over_page(self):
        pool = StoragePool(32, 2)
        with pool.fifo() as fifo:
            self.assertEqual(fifo.capacity, 32)
            self.assertEqual(fifo.push(b"z" * 40), 32)
            self.assertTrue(fifo.is_full())
            self.assertEqual(pool.free_pages(), 1)
        self.assertTrue(fifo.closed)
        self.assertEqual(pool.free_pages(), 2)

    def test_fifos_do_not_share_pages(self):
        pool = StoragePool(8, 2)
        with pool.fifo() as a, pool.fifo() as b:
            a.push(b"aaaaaaaa")
            b.push(b"bbbbbbbb")
            dest = bytearray(8)
            a.pull(dest)
            self.assertEqual(dest, b"aaaaaaaa")

    def test_page_erased_on_release(self):
        pool = StoragePool(16, 1)
        with pool.fifo() as fifo:
            fifo.push(b"x" * 16)
            self.assertEqual(pool._memory.tobytes(), b"x" * 16)
        self.assertEqual(pool._memory.tobytes(), bytes(16))

    def test_exhausted_pool_raises(self):
        pool = StoragePool(16, 1)
        with pool.fifo():
            with self.assertRaises(PoolExhausted):
                with pool.fifo():
                    pass
            with self.assertRaises(BufferError):
                with pool.fifo():
                    pass
            self.assertEqual(pool.free_pages(), 0)
        self.assertEqual(pool.free_pages(), 1)
        with pool.fifo() as fifo:
            self.assertEqual(fifo.push(b"ok"), 2)

    def test_empty_pool_raises(self):
        pool = StoragePool(16, 0)
        with self.assertRaises(PoolExhausted):
            with pool.fifo():
                pass

    def test_page_returned_when_body_raises(self):
        pool = StoragePool(16, 1)
        with self.assertRaises(RuntimeError):
            with pool.fifo():
                raise RuntimeError("boom")
        self.assertEqual(pool.free_pages(), 1)

    def test_stale_fifo_cannot_touch_reused_page(self):
        pool = StoragePool(8, 1)
        with pool.fifo() as stale:
            stale.push(b"old")
        with pool.fifo() as current:
            with self.assertRaises(BufferClosed):
                stale.push(b"XXXX")
            dest = bytearray(8)
            current.push(b"new")
            self.assertEqual(current.pull(dest), 3)
            self.assertEqual(dest[:3], b"new")
            self.assertEqual(pool._memory[3:].tobytes(), bytes(5))


if __name__ == "__main__":
    unittest.main()
