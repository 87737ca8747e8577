from .base import AbstractDurableStore, NoopDurableStore
from .local_storage import LocalDurableStore
from .caching_storage import MemoryCache, TieredCache
from .factory import StorageFactory
