from enum import Enum

class LoadStatus(Enum):
    NOT_LOADED = 0
    QUEUED = 1
    FETCHING = 2
    CACHED = 3

class ImageLoaderBase:
    """图片加载器接口"""
    def load(self, key, priority):
        raise NotImplementedError

    def preload(self, keys):
        raise NotImplementedError

    def cancel_pending(self, keys):
        raise NotImplementedError

    def is_cached(self, key) -> bool:
        raise NotImplementedError

    def get_cached(self, key):
        raise NotImplementedError

    def clear_memory_cache(self):
        raise NotImplementedError

    def stats(self) -> dict:
        raise NotImplementedError

    def close(self):
        raise NotImplementedError
