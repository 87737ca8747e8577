import os
import logging
import threading
from concurrent.futures import Future
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from .base import ImageLoaderBase, LoadStatus
from .retrieval import ImageFetcher, RetrievalTask, has_userinfo
from ..config_loader import load_config_from_json, resolve_loader_config
from ..errors import InvalidKeyError, LoadCancelledError
from ..prefetch import InFlightRegistry, Priority, PriorityScheduler, QueueItem
from ..storage.base import AbstractDurableStore
from ..storage.caching_storage import TieredCache
from ..storage.factory import StorageFactory


# ------------------ Logger 配置 ------------------ #
logger = logging.getLogger("ImageLoader")
if not logger.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    logger.addHandler(ch)

# 调试日志文件同时收集这些组件的日志
_COMPONENT_LOGGERS = (
    "ImageLoader",
    "PriorityScheduler",
    "RetrievalTask",
    "TieredCache",
    "LocalDurableStore",
    "StorageFactory",
)


def _resolved(value) -> Future:
    fut: Future = Future()
    fut.set_result(value)
    return fut


def _failed(exc: BaseException) -> Future:
    fut: Future = Future()
    fut.set_exception(exc)
    return fut


def _follow(key: str, shared: Future) -> Future:
    """为调用方派生独立的 future。

    共享 future 只在内部持有；调用方 cancel() 只影响自己，
    同一 URL 的其他等待方和正在进行的检索不受影响。
    """
    child: Future = Future()

    def _copy(src: Future):
        # 已被调用方取消的 child 不再结算
        if not child.set_running_or_notify_cancel():
            return
        if src.cancelled():
            child.set_exception(LoadCancelledError(key))
            return
        exc = src.exception()
        if exc is not None:
            child.set_exception(exc)
        else:
            child.set_result(src.result())

    shared.add_done_callback(_copy)
    return child


def _as_key_list(keys) -> List:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class ImageLoader(ImageLoaderBase):
    """
    图片加载器：优先级调度 + 请求去重 + 两级缓存。

    load 的决策顺序：内存命中 → 加入进行中的请求 → 入队等待调度。
    "查重 + 入队" 在同一把锁内完成，同一 URL 同时只会有一个检索任务。
    """

    def __init__(
        self,
        config=None,
        durable_store: Optional[AbstractDurableStore] = None,
        fetcher=None,
        cache: Optional[TieredCache] = None,
    ):
        self.config = resolve_loader_config(config)
        self._configure_logging()

        self._cache = cache if cache is not None else StorageFactory.create_cache(self.config, durable_store)
        self._owns_fetcher = fetcher is None
        if fetcher is None:
            fetcher = ImageFetcher(
                timeout=float(self.config.request_timeout_sec),
                user_agent=self.config.user_agent,
            )
        self._fetcher = fetcher
        self._task = RetrievalTask(self._cache, self._fetcher)
        self._inflight = InFlightRegistry()
        self._scheduler = PriorityScheduler(self._execute, max_concurrent=int(self.config.max_concurrent))
        self._lock = threading.RLock()
        self._closed = False
        logger.info(
            "ImageLoader 初始化完成: max_concurrent=%d, 缓存=%s",
            self._scheduler.max_concurrent,
            type(self._cache.durable).__name__,
        )

    # ------------------ 公共接口 ------------------ #
    @staticmethod
    def is_valid_key(key) -> bool:
        """只接受带主机名、不含 user:pass@ 的 http/https 绝对 URL"""
        if not isinstance(key, str) or not key:
            return False
        try:
            parts = urlsplit(key)
            host = parts.hostname
        except ValueError:
            return False
        if has_userinfo(parts):
            return False
        return parts.scheme in ("http", "https") and bool(host)

    def load(self, key, priority: Priority = Priority.NORMAL) -> Future:
        """异步加载图片，返回 Future[str]（data URL）。

        非法 URL 返回一个已失败（InvalidKeyError）的 future，不触碰任何状态。
        """
        if not self.is_valid_key(key):
            logger.debug(f"拒绝非法 URL: {key!r}")
            return _failed(InvalidKeyError(key))
        priority = Priority(priority)

        with self._lock:
            if self._closed:
                return _failed(RuntimeError("ImageLoader is closed"))

            entry = self._cache.memory.get(key)
            if entry is not None:
                return _resolved(entry)

            fut, created = self._inflight.join_or_create(key)
            if not created:
                # 更高优先级的请求加入时提升尚未调度的队列项
                self._scheduler.promote(key, priority)
                return _follow(key, fut)

            self._scheduler.submit(key, priority, fut)
        return _follow(key, fut)

    def load_sync(self, key, priority: Priority = Priority.NORMAL, timeout: Optional[float] = None) -> str:
        """阻塞版本的 load，失败时抛出对应异常"""
        return self.load(key, priority).result(timeout=timeout)

    def preload(self, keys: Iterable[str]) -> int:
        """以 LOW 优先级后台加载未缓存的图片，结果与失败都被忽略。返回发起的数量。"""
        issued = 0
        for key in _as_key_list(keys):
            if not self.is_valid_key(key) or self._cache.contains(key):
                continue
            fut = self.load(key, Priority.LOW)
            fut.add_done_callback(self._log_preload_result)
            issued += 1
        return issued

    def cancel_pending(self, keys: Iterable[str]) -> int:
        """移除尚未调度的请求；已经在下载的任务不受影响，结果照常进入缓存。"""
        key_list = _as_key_list(keys)
        with self._lock:
            removed = self._scheduler.cancel(key_list)
            for item in removed:
                self._inflight.discard(item.key, item.future)
        self._fail_cancelled(removed)
        if removed:
            logger.debug(f"取消了 {len(removed)} 个排队中的请求")
        return len(removed)

    def is_cached(self, key) -> bool:
        return isinstance(key, str) and self._cache.contains(key)

    def get_cached(self, key) -> Optional[str]:
        if not isinstance(key, str):
            return None
        return self._cache.peek(key)

    def status(self, key) -> LoadStatus:
        if self.is_cached(key):
            return LoadStatus.CACHED
        if not isinstance(key, str) or key not in self._inflight:
            return LoadStatus.NOT_LOADED
        if key in self._scheduler.pending_keys():
            return LoadStatus.QUEUED
        return LoadStatus.FETCHING

    def clear_memory_cache(self):
        self._cache.clear_memory()

    def flush(self) -> int:
        """等待持久层写队列写完"""
        return self._cache.flush()

    def stats(self) -> dict:
        cache_stats = self._cache.get_stats()
        return {
            "memoryCacheSize": cache_stats["memory_size"],
            "queueLength": self._scheduler.queue_length,
            "activeCount": self._scheduler.active_count,
            "maxConcurrent": self._scheduler.max_concurrent,
            "inFlight": len(self._inflight),
            "memoryBytes": cache_stats["memory_bytes"],
            "memoryHits": cache_stats["memory_hits"],
            "durableHits": cache_stats["durable_hits"],
            "misses": cache_stats["misses"],
            "evictions": cache_stats["evictions"],
            "pendingWrites": cache_stats["pending_writes"],
            "durableWriteFailures": cache_stats["durable_write_failures"],
            "networkFetches": self._task.network_fetches,
            "networkFailures": self._task.network_failures,
        }

    def log_stats(self):
        stats = self.stats()
        logger.info(
            f"加载统计 - 内存条目: {stats['memoryCacheSize']}, "
            f"排队: {stats['queueLength']}, "
            f"执行中: {stats['activeCount']}/{stats['maxConcurrent']}, "
            f"内存命中: {stats['memoryHits']}, "
            f"持久层命中: {stats['durableHits']}, "
            f"网络请求: {stats['networkFetches']} (失败 {stats['networkFailures']}), "
            f"淘汰: {stats['evictions']}"
        )

    def close(self):
        """关闭加载器：取消排队请求，等待执行中的任务，冲刷持久层写队列"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            removed = self._scheduler.drain_pending()
            for item in removed:
                self._inflight.discard(item.key, item.future)
        self._fail_cancelled(removed)
        self._scheduler.shutdown(wait=True)
        self._cache.close()
        if self._owns_fetcher:
            self._fetcher.close()
        logger.info("[IMAGE LOADER CLOSED]")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------ 内部方法 ------------------ #
    def _execute(self, item: QueueItem):
        """调度器工作线程调用：执行检索并结算共享 future"""
        fut = item.future
        try:
            entry = self._task.run(item.key)
        except Exception as e:
            # 先移除登记项再结算，等待方被唤醒后重试会发起新的检索
            self._inflight.discard(item.key, fut)
            logger.warning(f"加载失败 {item.key}: {e}")
            fut.set_exception(e)
            return
        self._inflight.discard(item.key, fut)
        fut.set_result(entry)

    @staticmethod
    def _fail_cancelled(items: List[QueueItem]):
        for item in items:
            if not item.future.done():
                item.future.set_exception(LoadCancelledError(item.key))

    @staticmethod
    def _log_preload_result(fut: Future):
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.debug(f"预加载失败（已忽略）: {exc}")

    def _configure_logging(self):
        level = getattr(logging, str(self.config.log_level).upper(), logging.INFO)
        logger.setLevel(level)
        self._maybe_setup_debug_file_handler(self.config.debug_log_file)

    @staticmethod
    def _maybe_setup_debug_file_handler(path: Optional[str]):
        """配置了 debug_log_file 时，把各组件日志额外写入该文件"""
        if not path:
            return
        try:
            dir_name = os.path.dirname(os.path.abspath(path))
            os.makedirs(dir_name, exist_ok=True)
            fh = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            logger.warning(f"无法创建调试日志文件: {e}")
            return
        fh.setLevel(logging.DEBUG)
        fh.set_name("ImageLoaderDebugFile")
        fh.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        for name in _COMPONENT_LOGGERS:
            comp = logging.getLogger(name)
            # 防止重复添加
            if any(getattr(h, "name", None) == "ImageLoaderDebugFile" for h in comp.handlers):
                continue
            comp.addHandler(fh)
            if comp.level == logging.NOTSET or comp.level > logging.DEBUG:
                comp.setLevel(logging.DEBUG)
        logger.info(f"[debug_log] 写入调试日志到: {path}")


# --- module-level loader wrapper ---
_loader_singleton: Optional[ImageLoader] = None


def init_loader(config=None, config_path: Optional[str] = None) -> ImageLoader:
    """
    初始化并返回 loader 单例。未传入 config 时从 config.json 读取，
    找不到默认的 config.json 则使用内置默认配置。
    """
    global _loader_singleton
    if _loader_singleton is None:
        if config is None:
            try:
                config = load_config_from_json(config_path)
            except FileNotFoundError:
                if config_path is not None:
                    raise
                logger.info("未找到 config.json，使用默认配置")
        _loader_singleton = ImageLoader(config)
    return _loader_singleton


def get_loader() -> ImageLoader:
    loader = _loader_singleton
    if loader is None:
        raise RuntimeError("Loader not initialized. Call init_loader(config) first.")
    return loader


def destroy_loader():
    """销毁 loader（如果存在）"""
    global _loader_singleton
    if _loader_singleton is not None:
        try:
            _loader_singleton.close()
        finally:
            _loader_singleton = None


def load_image(url, priority: Priority = Priority.NORMAL) -> Future:
    """模块级 load 接口"""
    return get_loader().load(url, priority)


def preload_images(urls: Iterable[str]) -> int:
    return get_loader().preload(urls)


def cancel_pending(urls: Iterable[str]) -> int:
    return get_loader().cancel_pending(urls)


def is_image_cached(url) -> bool:
    """未初始化时视为未缓存"""
    loader = _loader_singleton
    if loader is None:
        return False
    return loader.is_cached(url)


def get_cached(url) -> Optional[str]:
    loader = _loader_singleton
    if loader is None:
        return None
    return loader.get_cached(url)


def clear_memory_cache():
    get_loader().clear_memory_cache()


def get_stats() -> dict:
    return get_loader().stats()
