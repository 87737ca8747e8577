import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("PriorityScheduler")

MAX_CONCURRENT = 4


class Priority(IntEnum):
    HIGH = 0
    NORMAL = 1
    LOW = 2


@dataclass
class QueueItem:
    key: str
    priority: Priority
    seq: int
    future: Future
    enqueued_at: float = field(default_factory=time.time)
    admitted: bool = False

    def sort_key(self) -> Tuple[int, int]:
        return int(self.priority), self.seq


class InFlightRegistry:
    """
    One pending future per URL. Concurrent requests for the same URL join
    the existing future instead of starting another retrieval.
    Entries are removed by the owner right before the future settles.
    """

    def __init__(self):
        self._map: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def join_or_create(
        self, key: str, factory: Callable[[], Future] = Future
    ) -> Tuple[Future, bool]:
        with self._lock:
            fut = self._map.get(key)
            if fut is not None:
                return fut, False
            fut = factory()
            self._map[key] = fut
            return fut, True

    def get(self, key: str) -> Optional[Future]:
        with self._lock:
            return self._map.get(key)

    def discard(self, key: str, future: Future) -> bool:
        # Only drop the entry if it still belongs to this future.
        with self._lock:
            if self._map.get(key) is future:
                del self._map[key]
                return True
            return False

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._map)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._map

    def __len__(self) -> int:
        with self._lock:
            return len(self._map)


class PriorityScheduler:
    """
    Admission-controlled dispatcher.

    At most `max_concurrent` items run at once. Pending items are admitted
    lowest priority value first, FIFO within a class. Every completion
    releases its slot and drains again, so freed capacity is reused
    immediately. Admitted items are never preempted.

    `run_fn` receives the admitted QueueItem and is expected to settle
    `item.future` itself.
    """

    def __init__(self, run_fn: Callable[[QueueItem], None], max_concurrent: int = MAX_CONCURRENT):
        self._run_fn = run_fn
        self._max = max(int(max_concurrent), 1)
        self._pending: List[QueueItem] = []
        self._active = 0
        self._seq = itertools.count()
        self._lock = threading.RLock()
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=self._max, thread_name_prefix="image-fetch")
        # Telemetry
        self.admitted_total = 0
        self.cancelled_total = 0

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_keys(self) -> List[str]:
        with self._lock:
            return [item.key for item in sorted(self._pending, key=QueueItem.sort_key)]

    def submit(self, key: str, priority: Priority, future: Future) -> QueueItem:
        with self._lock:
            if self._closed:
                raise RuntimeError("scheduler is shut down")
            item = QueueItem(key=key, priority=Priority(priority), seq=next(self._seq), future=future)
            self._pending.append(item)
            logger.debug(f"queued {key} priority={item.priority.name} pending={len(self._pending)}")
        self._drain()
        return item

    def promote(self, key: str, priority: Priority) -> bool:
        """Raise the class of a still-pending item. Insertion order is kept."""
        with self._lock:
            for item in self._pending:
                if item.key == key and priority < item.priority:
                    logger.debug(f"promote {key} {item.priority.name} -> {Priority(priority).name}")
                    item.priority = Priority(priority)
                    return True
            return False

    def cancel(self, keys: Iterable[str]) -> List[QueueItem]:
        """Remove pending items for keys. Admitted items are left alone."""
        key_set = set(keys)
        with self._lock:
            removed = [item for item in self._pending if item.key in key_set]
            if removed:
                self._pending = [item for item in self._pending if item.key not in key_set]
                self.cancelled_total += len(removed)
        return removed

    def drain_pending(self) -> List[QueueItem]:
        with self._lock:
            removed, self._pending = self._pending, []
            self.cancelled_total += len(removed)
        return removed

    def shutdown(self, wait: bool = True):
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _pop_next(self) -> QueueItem:
        item = min(self._pending, key=QueueItem.sort_key)
        self._pending.remove(item)
        return item

    def _drain(self):
        with self._lock:
            while not self._closed and self._active < self._max and self._pending:
                item = self._pop_next()
                item.admitted = True
                self._active += 1
                self.admitted_total += 1
                logger.debug(
                    f"admit {item.key} priority={item.priority.name} "
                    f"active={self._active}/{self._max} waited={time.time() - item.enqueued_at:.3f}s"
                )
                self._executor.submit(self._run, item)

    def _run(self, item: QueueItem):
        try:
            self._run_fn(item)
        except Exception as e:
            logger.error(f"task for {item.key} raised: {e}", exc_info=True)
            if not item.future.done():
                item.future.set_exception(e)
        finally:
            with self._lock:
                self._active -= 1
            self._drain()
