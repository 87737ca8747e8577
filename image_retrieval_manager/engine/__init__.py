from .base import ImageLoaderBase, LoadStatus
from .retrieval import ImageFetcher, RetrievalTask, encode_data_url
from .loader import (
    ImageLoader,
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

__all__ = [
    'ImageLoaderBase',
    'LoadStatus',
    'ImageFetcher',
    'RetrievalTask',
    'encode_data_url',
    'ImageLoader',
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
]
