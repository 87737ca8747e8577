from typing import Optional
import logging
import importlib

from .base import AbstractDurableStore, NoopDurableStore
from .local_storage import LocalDurableStore
from .caching_storage import TieredCache

logger = logging.getLogger("StorageFactory")


class StorageFactory:
    """持久层 / 分层缓存工厂：根据 image_loader_config 创建实例。"""

    @staticmethod
    def _import_backend(class_path: str):
        try:
            module_name, cls_name = str(class_path).rsplit(".", 1)
            mod = importlib.import_module(module_name)
            return getattr(mod, cls_name)
        except (ImportError, AttributeError, ValueError) as e:
            logger.warning("持久层后端动态导入失败: %s (%s)", class_path, e)
            return None

    @staticmethod
    def create_durable_store(config) -> AbstractDurableStore:
        """按配置创建持久层。

        durable_store_type:
        - local: 本地目录（durable_dir）
        - noop / none: 不持久化
        - module.Class: 动态导入，以 durable_dir 作为唯一构造参数，导入失败抛 ValueError
        """
        store_type = getattr(config, "durable_store_type", "local")
        durable_dir = getattr(config, "durable_dir", "/tmp/image_cache")
        layout = getattr(config, "directory_layout", "hash2")

        stype = "noop" if store_type is None else str(store_type)
        logger.info("创建持久层: durable_store_type=%s, durable_dir=%s", stype, durable_dir)

        if stype.lower() == "local":
            return LocalDurableStore(str(durable_dir), layout=str(layout))
        if stype.lower() in ("noop", "none", "placeholder"):
            return NoopDurableStore()
        if "." in stype:
            cls = StorageFactory._import_backend(stype)
            if cls is None:
                raise ValueError(f"Cannot import durable store class: {store_type}")
            return cls(str(durable_dir))
        raise ValueError(f"Unsupported durable store type: {store_type}")

    @staticmethod
    def create_cache(config, durable_store: Optional[AbstractDurableStore] = None) -> TieredCache:
        """创建内存 + 持久层的分层缓存"""
        if durable_store is None:
            durable_store = StorageFactory.create_durable_store(config)
        capacity = int(getattr(config, "mem_cache_capacity_bytes", 256 * 1024 * 1024))
        max_entries = int(getattr(config, "mem_cache_max_entries", 0) or 0)
        interval = float(getattr(config, "write_behind_interval_sec", 0.5))
        logger.info(
            "缓存配置: 内存容量=%dB, 最大条目数=%d, 持久层=%s",
            capacity,
            max_entries,
            type(durable_store).__name__,
        )
        return TieredCache(
            durable_store,
            mem_capacity_bytes=capacity,
            mem_max_entries=max_entries,
            write_behind_interval_sec=interval,
        )
