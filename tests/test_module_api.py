# test_module_api.py
import json
import os
import tempfile
from unittest.mock import patch

import pytest

from image_retrieval_manager import (
    ImageFetcher,
    InvalidKeyError,
    Priority,
    cancel_pending,
    clear_memory_cache,
    destroy_loader,
    get_cached,
    get_loader,
    get_stats,
    init_loader,
    is_image_cached,
    load_image,
    preload_images,
)


@pytest.fixture
def config_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, "config.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({
                "image_loader_config": {
                    "durable_store_type": "local",
                    "durable_dir": os.path.join(temp_dir, "durable"),
                    "max_concurrent": 2,
                    "log_level": "WARNING",
                }
            }, f)
        yield path
        destroy_loader()


def fake_fetch(self, url):
    return b"\xff\xd8\xff" + url.encode(), "image/jpeg"


def test_module_level_api(config_path):
    assert not is_image_cached("https://x/a.jpg")
    assert get_cached("https://x/a.jpg") is None
    with pytest.raises(RuntimeError):
        get_loader()

    loader = init_loader(config_path=config_path)
    assert init_loader() is loader
    assert get_stats()["maxConcurrent"] == 2

    with patch.object(ImageFetcher, "fetch", fake_fetch):
        entry = load_image("https://x/a.jpg", Priority.HIGH).result(timeout=5)
        assert entry.startswith("data:image/jpeg;base64,")
        assert is_image_cached("https://x/a.jpg")
        assert get_cached("https://x/a.jpg") == entry
        assert preload_images(["https://x/a.jpg"]) == 0
        assert cancel_pending(["https://x/none.jpg"]) == 0

    assert isinstance(load_image("not-a-url").exception(), InvalidKeyError)
    clear_memory_cache()
    assert not is_image_cached("https://x/a.jpg")

    destroy_loader()
    with pytest.raises(RuntimeError):
        get_stats()


def test_explicit_missing_config_path_raises():
    with pytest.raises(FileNotFoundError):
        init_loader(config_path="/nonexistent/config.json")
