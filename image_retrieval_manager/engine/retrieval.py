import base64
import logging
import threading
import time
from http.cookiejar import DefaultCookiePolicy
from typing import Optional, Tuple
from urllib.parse import SplitResult, urlsplit

import requests

from ..errors import InvalidKeyError, NetworkError
from ..storage.caching_storage import TieredCache

logger = logging.getLogger("RetrievalTask")

DEFAULT_MIME = "application/octet-stream"


def has_userinfo(parts: SplitResult) -> bool:
    return parts.username is not None or parts.password is not None


def encode_data_url(data: bytes, content_type: Optional[str] = None) -> str:
    """把原始字节编码为 data:<mime>;base64,<payload>"""
    mime = (content_type or "").split(";", 1)[0].strip().lower() or DEFAULT_MIME
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


class ImageFetcher:
    """基于 requests 的图片下载器。

    不携带任何凭据：不发送 Authorization，不保存/发送 cookie，不读取 .netrc，
    也不转发 Referer。
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._timeout = timeout
        self._session = session or requests.Session()
        # trust_env=False 时 requests 不会从 .netrc 取账号密码
        self._session.trust_env = False
        self._session.auth = None
        self._session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        if user_agent:
            self._session.headers["User-Agent"] = user_agent
        self._session.headers.pop("Referer", None)

    def fetch(self, url: str) -> Tuple[bytes, str]:
        """下载 url，返回 (内容, Content-Type)

        URL 中带 user:pass@ 时直接拒绝，requests 会把它转成 Basic 认证头。
        """
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise InvalidKeyError(url) from e
        if has_userinfo(parts):
            raise InvalidKeyError(url)
        try:
            resp = self._session.get(url, timeout=self._timeout, allow_redirects=True)
        except requests.RequestException as e:
            raise NetworkError(url, reason=str(e)) from e
        if not 200 <= resp.status_code < 300:
            raise NetworkError(url, status_code=resp.status_code, reason=resp.reason or "")
        return resp.content, resp.headers.get("Content-Type", "")

    def close(self):
        self._session.close()


class RetrievalTask:
    """单个 URL 的检索：内存 → 持久层 → 网络，网络结果写回两级缓存。

    内存层在 run 返回前同步写入，调用方 future 完成时 get_cached 一定可见。
    """

    def __init__(self, cache: TieredCache, fetcher):
        self.cache = cache
        self.fetcher = fetcher
        self._lock = threading.Lock()
        self.network_fetches = 0
        self.network_failures = 0

    def run(self, key: str) -> str:
        entry = self.cache.get(key)
        if entry is not None:
            return entry

        t0 = time.time()
        with self._lock:
            self.network_fetches += 1
        try:
            data, content_type = self.fetcher.fetch(key)
        except NetworkError:
            with self._lock:
                self.network_failures += 1
            raise
        entry = encode_data_url(data, content_type)
        self.cache.put(key, entry)
        logger.debug(
            "fetched %s: %d bytes, type=%s, %.3fs",
            key,
            len(data),
            content_type or DEFAULT_MIME,
            time.time() - t0,
        )
        return entry
