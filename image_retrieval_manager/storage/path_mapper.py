import hashlib
import os
import re

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def url_digest(key: str) -> str:
    """URL 的 sha256 十六进制摘要"""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class HashBucketPathMapper:
    """Map URL keys to a relative path inside the durable directory.

    hash2 layout: <h0>/<h1>/<sha256><suffix>, where h0=hash[:2], h1=hash[2:4].
    flat layout: a filesystem-safe slug of the URL followed by a short hash,
    so distinct URLs never collide after sanitizing.
    """

    def __init__(self, enable: bool = True):
        self.enable = enable

    def map(self, key: str, suffix: str = "") -> str:
        hx = url_digest(key)
        if not self.enable:
            slug = _UNSAFE_RE.sub("_", key)[:96].strip("_") or "entry"
            return f"{slug}_{hx[:16]}{suffix}"
        h0, h1 = hx[:2], hx[2:4]
        return os.path.join(h0, h1, f"{hx}{suffix}")
