import unittest
import shutil
import tempfile
from types import SimpleNamespace
from image_retrieval_manager.storage.base import NoopDurableStore
from image_retrieval_manager.storage.factory import StorageFactory
from image_retrieval_manager.storage.local_storage import LocalDurableStore

class StorageFactoryTests(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_local(self):
        cfg = SimpleNamespace(durable_store_type="local", durable_dir=self.tmp_dir, directory_layout="flat")
        store = StorageFactory.create_durable_store(cfg)
        self.assertIsInstance(store, LocalDurableStore)
        self.assertEqual(store.local_dir, self.tmp_dir)

    def test_noop(self):
        for t in ("noop", "none", None):
            store = StorageFactory.create_durable_store(SimpleNamespace(durable_store_type=t))
            self.assertIsInstance(store, NoopDurableStore)

    def test_dotted_class_path(self):
        cfg = SimpleNamespace(
            durable_store_type="image_retrieval_manager.storage.local_storage.LocalDurableStore",
            durable_dir=self.tmp_dir,
        )
        self.assertIsInstance(StorageFactory.create_durable_store(cfg), LocalDurableStore)

    def test_unimportable_class_raises(self):
        # 配置写错时不能静默关闭持久化
        for t in ("no_such_module.Store", "image_retrieval_manager.storage.local_storage.NoSuchStore"):
            cfg = SimpleNamespace(durable_store_type=t, durable_dir=self.tmp_dir)
            with self.assertRaises(ValueError):
                StorageFactory.create_durable_store(cfg)

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            StorageFactory.create_durable_store(SimpleNamespace(durable_store_type="s3"))

    def test_create_cache(self):
        cfg = SimpleNamespace(
            durable_store_type="noop",
            mem_cache_capacity_bytes=1024,
            mem_cache_max_entries=3,
            write_behind_interval_sec=0.1,
        )
        cache = StorageFactory.create_cache(cfg)
        try:
            self.assertEqual(cache.memory.capacity, 1024)
            self.assertEqual(cache.memory.max_entries, 3)
            self.assertIsInstance(cache.durable, NoopDurableStore)
        finally:
            cache.close()

if __name__ == "__main__":
    unittest.main()
