import time
import logging
import threading
from collections import OrderedDict
from typing import Optional, List, Tuple

from .base import AbstractDurableStore
from ..errors import PersistenceError

logger = logging.getLogger("TieredCache")


class MemoryCache:
    """基于内存的LRU缓存，按字节容量与条目数驱动淘汰。

    capacity_bytes <= 0 且 max_entries <= 0 时不淘汰（无上限）。线程安全。
    """

    def __init__(self, capacity_bytes: int = 256 * 1024 * 1024, max_entries: int = 0):
        self.capacity = int(capacity_bytes)
        self.max_entries = int(max_entries)
        self._map: "OrderedDict[str, str]" = OrderedDict()
        self._size = 0
        self._lock = threading.RLock()
        self.evictions = 0

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._map.get(key)
            if entry is None:
                return None
            # LRU 触顶
            self._map.move_to_end(key)
            return entry

    def peek(self, key: str) -> Optional[str]:
        """读取但不更新 LRU 顺序"""
        with self._lock:
            return self._map.get(key)

    def put(self, key: str, entry: str) -> bool:
        if entry is None:
            return False
        with self._lock:
            old = self._map.pop(key, None)
            if old is not None:
                self._size -= len(old)
            self._map[key] = entry
            self._size += len(entry)
            evicted = self._evict_if_needed()
            if evicted:
                logger.debug(f"MemoryCache evicted {evicted} entries, size={self._size}")
            return True

    def _evict_if_needed(self) -> int:
        evicted = 0
        # 最新写入的条目在末尾，即使单独超过容量也保留，保证 get 能立即读到
        while len(self._map) > 1 and self._over_limit():
            _, old = self._map.popitem(last=False)
            self._size -= len(old)
            evicted += 1
        self.evictions += evicted
        return evicted

    def _over_limit(self) -> bool:
        if self.capacity > 0 and self._size > self.capacity:
            return True
        if self.max_entries > 0 and len(self._map) > self.max_entries:
            return True
        return False

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._map

    def delete(self, key: str) -> bool:
        with self._lock:
            old = self._map.pop(key, None)
            if old is None:
                return False
            self._size -= len(old)
            return True

    def clear(self) -> None:
        with self._lock:
            self._map.clear()
            self._size = 0

    @property
    def size_bytes(self) -> int:
        with self._lock:
            return self._size

    def __len__(self) -> int:
        with self._lock:
            return len(self._map)


class TieredCache:
    """两级缓存：内存（权威、最快）+ 持久层（跨进程重启保留）。

    - get: 先查内存，再查持久层；持久层命中回填内存。
    - put: 同步写内存，持久层写入进入后台队列异步完成。
    - 持久层的任何读写失败都只记日志，不影响调用方。
    """

    def __init__(
        self,
        durable_store: AbstractDurableStore,
        mem_capacity_bytes: int = 256 * 1024 * 1024,
        mem_max_entries: int = 0,
        write_behind_interval_sec: float = 0.5,
    ) -> None:
        self.durable = durable_store
        self.memory = MemoryCache(mem_capacity_bytes, mem_max_entries)
        self._interval = max(float(write_behind_interval_sec), 0.01)

        self.stats = {
            "memory_hits": 0,
            "durable_hits": 0,
            "misses": 0,
            "durable_writes": 0,
            "durable_write_failures": 0,
            "durable_read_failures": 0,
        }
        self._stats_lock = threading.Lock()

        # 异步写队列
        self._write_queue: List[Tuple[str, str]] = []
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_flag = False
        self._thread = threading.Thread(target=self._flush_worker, name="durable-writer", daemon=True)
        self._thread.start()

    # ------------------ 读写 ------------------

    def get(self, key: str) -> Optional[str]:
        entry = self.memory.get(key)
        if entry is not None:
            self._bump("memory_hits")
            logger.debug(f"内存缓存命中: {key}")
            return entry

        try:
            entry = self._durable_get(key)
        except PersistenceError as e:
            self._bump("durable_read_failures")
            logger.warning(str(e))
            entry = None
        if entry is not None:
            self._bump("durable_hits")
            logger.debug(f"持久层命中: {key}")
            self.memory.put(key, entry)
            return entry

        self._bump("misses")
        return None

    def put(self, key: str, entry: str) -> None:
        self.memory.put(key, entry)
        with self._lock:
            self._write_queue.append((key, entry))
        self._wake.set()

    def peek(self, key: str) -> Optional[str]:
        return self.memory.peek(key)

    def contains(self, key: str) -> bool:
        return self.memory.exists(key)

    def clear_memory(self) -> None:
        self.memory.clear()
        logger.info("内存缓存已清空")

    def pending_writes(self) -> int:
        with self._lock:
            return len(self._write_queue)

    def get_stats(self) -> dict:
        with self._stats_lock:
            stats = dict(self.stats)
        stats["memory_size"] = len(self.memory)
        stats["memory_bytes"] = self.memory.size_bytes
        stats["evictions"] = self.memory.evictions
        stats["pending_writes"] = self.pending_writes()
        return stats

    # ------------------ 内部方法 ------------------

    def _bump(self, name: str) -> None:
        with self._stats_lock:
            self.stats[name] += 1

    def _durable_get(self, key: str) -> Optional[str]:
        try:
            return self.durable.get_by_key(key)
        except Exception as e:
            raise PersistenceError(key, "read", str(e)) from e

    def _durable_put(self, key: str, entry: str) -> None:
        try:
            self.durable.put_by_key(key, entry)
        except Exception as e:
            raise PersistenceError(key, "write", str(e)) from e

    # ------------------ 异步写入持久层 ------------------

    def _flush_worker(self):
        while not self._stop_flag:
            self._wake.wait(self._interval)
            self._wake.clear()
            self.flush()

    def flush(self) -> int:
        """同步写出所有排队中的条目，返回成功数"""
        with self._flush_lock:
            with self._lock:
                queue_copy = self._write_queue
                self._write_queue = []

            if not queue_copy:
                return 0
            logger.debug(f"开始异步写入 {len(queue_copy)} 个条目到持久层")

            success_count = 0
            t0 = time.time()
            for key, entry in queue_copy:
                try:
                    self._durable_put(key, entry)
                    success_count += 1
                except PersistenceError as e:
                    # 不重试，内存中的结果仍然有效
                    self._bump("durable_write_failures")
                    logger.warning(str(e))
            with self._stats_lock:
                self.stats["durable_writes"] += success_count
            logger.debug(
                f"异步写入完成: {success_count}/{len(queue_copy)} 成功, 耗时 {time.time() - t0:.3f}s"
            )
            return success_count

    def close(self):
        if self._stop_flag:
            return
        self._stop_flag = True
        self._wake.set()
        self._thread.join(timeout=5.0)
        self.flush()  # 停止前冲刷队列
