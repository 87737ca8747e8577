import unittest
import threading
from concurrent.futures import Future
from image_retrieval_manager.prefetch import InFlightRegistry

class InFlightRegistryTests(unittest.TestCase):
    def test_join_or_create(self):
        reg = InFlightRegistry()
        f1, created1 = reg.join_or_create("k")
        f2, created2 = reg.join_or_create("k")
        self.assertTrue(created1)
        self.assertFalse(created2)
        self.assertIs(f1, f2)
        self.assertIn("k", reg)
        self.assertEqual(len(reg), 1)

    def test_discard_requires_same_future(self):
        reg = InFlightRegistry()
        f1, _ = reg.join_or_create("k")
        self.assertFalse(reg.discard("k", Future()))
        self.assertIn("k", reg)
        self.assertTrue(reg.discard("k", f1))
        self.assertNotIn("k", reg)
        f2, created = reg.join_or_create("k")
        self.assertTrue(created)
        self.assertIsNot(f1, f2)

    def test_concurrent_creators_share_one_future(self):
        reg = InFlightRegistry()
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(reg.join_or_create("k"))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(sum(1 for _, created in results if created), 1)
        self.assertEqual(len({id(f) for f, _ in results}), 1)

if __name__ == "__main__":
    unittest.main()
