import unittest
from image_retrieval_manager.storage.caching_storage import MemoryCache

class MemoryCacheTests(unittest.TestCase):
    def test_lru_eviction_by_bytes(self):
        cache = MemoryCache(capacity_bytes=10)
        cache.put("a", "aaaa")
        cache.put("b", "bbbb")
        cache.get("a")  # a 变为最近使用
        cache.put("c", "cccc")  # 超过 10 字节，淘汰 b
        self.assertTrue(cache.exists("a"))
        self.assertFalse(cache.exists("b"))
        self.assertTrue(cache.exists("c"))
        self.assertEqual(cache.size_bytes, 8)
        self.assertEqual(cache.evictions, 1)

    def test_eviction_by_entry_count(self):
        cache = MemoryCache(capacity_bytes=0, max_entries=2)
        for k in ("a", "b", "c"):
            cache.put(k, k)
        self.assertEqual(len(cache), 2)
        self.assertFalse(cache.exists("a"))

    def test_unbounded_when_limits_disabled(self):
        cache = MemoryCache(capacity_bytes=0, max_entries=0)
        for i in range(100):
            cache.put(f"k{i}", "x" * 100)
        self.assertEqual(len(cache), 100)
        self.assertEqual(cache.evictions, 0)

    def test_oversized_entry_is_kept(self):
        cache = MemoryCache(capacity_bytes=4)
        cache.put("a", "aa")
        cache.put("big", "x" * 16)
        self.assertEqual(cache.get("big"), "x" * 16)
        self.assertFalse(cache.exists("a"))

    def test_peek_does_not_touch_lru(self):
        cache = MemoryCache(capacity_bytes=8)
        cache.put("a", "aaaa")
        cache.put("b", "bbbb")
        self.assertEqual(cache.peek("a"), "aaaa")
        cache.put("c", "cccc")
        self.assertFalse(cache.exists("a"))

    def test_overwrite_and_clear(self):
        cache = MemoryCache()
        cache.put("a", "1")
        cache.put("a", "22")
        self.assertEqual(cache.get("a"), "22")
        self.assertEqual(cache.size_bytes, 2)
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertIsNone(cache.get("a"))
        self.assertFalse(cache.delete("a"))

if __name__ == "__main__":
    unittest.main()
