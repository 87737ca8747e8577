import unittest
import threading
from image_retrieval_manager import (
    ImageLoader,
    InvalidKeyError,
    LoadStatus,
    Priority,
    encode_data_url,
)

PNG = b"\x89PNG\r\n\x1a\n"


class GatedFetcher:
    """假的下载器：按 URL 可选阻塞，记录调用顺序"""
    def __init__(self):
        self.calls = []
        self.gates = {}
        self._lock = threading.Lock()
    def gate(self, url):
        ev = threading.Event()
        self.gates[url] = ev
        return ev
    def fetch(self, url):
        with self._lock:
            self.calls.append(url)
        ev = self.gates.get(url)
        if ev is not None:
            ev.wait(5)
        return PNG + url.encode(), "image/png"
    def release_all(self):
        for ev in self.gates.values():
            ev.set()


class LoaderBasicTests(unittest.TestCase):
    def setUp(self):
        self.fetcher = GatedFetcher()
        self.loader = ImageLoader(
            {"durable_store_type": "noop", "write_behind_interval_sec": 0.05, "log_level": "WARNING"},
            fetcher=self.fetcher,
        )

    def tearDown(self):
        self.fetcher.release_all()
        self.loader.close()

    def test_invalid_key_rejected_without_state_change(self):
        for bad in ("not-a-url", "", "ftp://x/a.png", "http://", "/relative/a.png", None, 42,
                    "https://user:secret@x/a.png", "https://token@x/a.png"):
            fut = self.loader.load(bad)
            self.assertTrue(fut.done())
            self.assertIsInstance(fut.exception(), InvalidKeyError)
        stats = self.loader.stats()
        self.assertEqual(stats["inFlight"], 0)
        self.assertEqual(stats["queueLength"], 0)
        self.assertEqual(self.fetcher.calls, [])

    def test_is_cached_flips_when_load_resolves(self):
        url = "https://x/a.png"
        gate = self.fetcher.gate(url)
        fut = self.loader.load(url, Priority.HIGH)
        self.assertFalse(self.loader.is_cached(url))
        self.assertIsNone(self.loader.get_cached(url))
        gate.set()
        entry = fut.result(timeout=5)
        self.assertTrue(self.loader.is_cached(url))
        self.assertEqual(self.loader.get_cached(url), entry)
        self.assertEqual(entry, encode_data_url(PNG + url.encode(), "image/png"))

    def test_cache_hit_returns_resolved_future_without_network(self):
        url = "https://x/a.png"
        first = self.loader.load_sync(url, timeout=5)
        fut = self.loader.load(url)
        self.assertTrue(fut.done())
        self.assertEqual(fut.result(), first)
        self.assertEqual(self.fetcher.calls, [url])

    def test_clear_memory_cache_forces_refetch(self):
        url = "https://x/a.png"
        self.loader.load_sync(url, timeout=5)
        self.loader.clear_memory_cache()
        self.assertFalse(self.loader.is_cached(url))
        self.loader.load_sync(url, timeout=5)
        self.assertEqual(self.fetcher.calls, [url, url])

    def test_status_transitions(self):
        url = "https://x/s.png"
        gate = self.fetcher.gate(url)
        self.assertEqual(self.loader.status(url), LoadStatus.NOT_LOADED)
        fut = self.loader.load(url)
        self.assertIn(self.loader.status(url), (LoadStatus.QUEUED, LoadStatus.FETCHING))
        gate.set()
        fut.result(timeout=5)
        self.assertEqual(self.loader.status(url), LoadStatus.CACHED)

    def test_preload_skips_cached_and_invalid(self):
        self.loader.load_sync("https://x/cached.png", timeout=5)
        issued = self.loader.preload(["https://x/cached.png", "bad", "https://x/p1.png", "https://x/p2.png"])
        self.assertEqual(issued, 2)

    def test_stats_shape(self):
        stats = self.loader.stats()
        for k in ("memoryCacheSize", "queueLength", "activeCount", "maxConcurrent"):
            self.assertIn(k, stats)
        self.assertEqual(stats["maxConcurrent"], 4)
        self.assertEqual(stats["memoryCacheSize"], 0)

    def test_closed_loader_returns_failed_future(self):
        self.loader.close()
        fut = self.loader.load("https://x/a.png")
        self.assertTrue(fut.done())
        self.assertIsInstance(fut.exception(), RuntimeError)
        self.assertEqual(self.fetcher.calls, [])

if __name__ == "__main__":
    unittest.main()
