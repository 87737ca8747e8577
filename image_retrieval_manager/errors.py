"""图片加载器的异常类型。"""
from typing import Optional


class ImageLoaderError(Exception):
    """所有加载器异常的基类"""


class InvalidKeyError(ImageLoaderError, ValueError):
    """key 不是合法的 http(s) 绝对 URL"""

    def __init__(self, key):
        self.key = key
        super().__init__(f"Invalid image URL: {key!r}")


class NetworkError(ImageLoaderError):
    """网络请求失败，或返回了非 2xx 状态码"""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            msg = f"HTTP {status_code} for {url}"
        else:
            msg = f"Request failed for {url}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class PersistenceError(ImageLoaderError):
    """持久层读写失败。只在缓存内部使用，不会传给 load 的调用方。"""

    def __init__(self, key: str, op: str, reason: str = ""):
        self.key = key
        self.op = op
        super().__init__(f"Durable store {op} failed for {key}: {reason}")


class LoadCancelledError(ImageLoaderError):
    """请求在被调度执行之前被 cancel_pending 移除"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Load cancelled before admission: {key}")
