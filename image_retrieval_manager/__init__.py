from .engine import (
    ImageLoaderBase,
    ImageLoader,
    LoadStatus,
    ImageFetcher,
    RetrievalTask,
    encode_data_url,
    init_loader,
    get_loader,
    destroy_loader,
    load_image,
    preload_images,
    cancel_pending,
    is_image_cached,
    get_cached,
    clear_memory_cache,
    get_stats,
)

from .prefetch import (
    MAX_CONCURRENT,
    Priority,
    QueueItem,
    InFlightRegistry,
    PriorityScheduler,
)

from .storage import (
    AbstractDurableStore,
    NoopDurableStore,
    LocalDurableStore,
    MemoryCache,
    TieredCache,
    StorageFactory,
)

from .errors import (
    ImageLoaderError,
    InvalidKeyError,
    NetworkError,
    PersistenceError,
    LoadCancelledError,
)

from .config_loader import (
    DEFAULT_LOADER_CONFIG,
    load_config_from_json,
    merge_config_with_defaults,
)

__all__ = [
    # 加载器相关
    'ImageLoaderBase',
    'ImageLoader',
    'LoadStatus',
    'ImageFetcher',
    'RetrievalTask',
    'encode_data_url',
    'init_loader',
    'get_loader',
    'destroy_loader',
    'load_image',
    'preload_images',
    'cancel_pending',
    'is_image_cached',
    'get_cached',
    'clear_memory_cache',
    'get_stats',

    # 调度相关
    'MAX_CONCURRENT',
    'Priority',
    'QueueItem',
    'InFlightRegistry',
    'PriorityScheduler',

    # 存储相关
    'AbstractDurableStore',
    'NoopDurableStore',
    'LocalDurableStore',
    'MemoryCache',
    'TieredCache',
    'StorageFactory',

    # 异常
    'ImageLoaderError',
    'InvalidKeyError',
    'NetworkError',
    'PersistenceError',
    'LoadCancelledError',

    # 配置相关
    'DEFAULT_LOADER_CONFIG',
    'load_config_from_json',
    'merge_config_with_defaults',
]
