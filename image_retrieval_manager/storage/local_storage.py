# image_retrieval_manager/storage/local_storage.py
import os
import json
import logging
import tempfile
from typing import Optional, List
from .base import AbstractDurableStore
from .path_mapper import HashBucketPathMapper

logger = logging.getLogger("LocalDurableStore")

ENTRY_SUFFIX = ".dataurl"


class LocalDurableStore(AbstractDurableStore):
    """本地文件系统持久层实现

    每个条目一个文件，内容为一行 JSON 头（保存原始 URL）加上 data URL 正文。
    读写异常直接向上抛出，由 TieredCache 负责吞掉。
    """

    def __init__(self, local_dir: str, layout: str = "hash2"):
        self.local_dir = local_dir
        os.makedirs(self.local_dir, exist_ok=True)
        hashed = str(layout).lower() in ("hash2", "hash_bucket", "hash")
        self._mapper = HashBucketPathMapper(enable=hashed)
        logger.info(f"Initialized LocalDurableStore with directory: {self.local_dir}, layout={layout}")

    def path_for(self, key: str) -> str:
        return os.path.join(self.local_dir, self._mapper.map(key, ENTRY_SUFFIX))

    def get_by_key(self, key: str) -> Optional[str]:
        full_path = self.path_for(key)
        if not os.path.exists(full_path):
            return None
        with open(full_path, 'r', encoding='utf-8') as f:
            header = json.loads(f.readline())
            entry = f.read()
        if header.get("url") != key:
            # sha256 碰撞或文件被篡改，当作未命中
            logger.warning(f"条目 URL 不匹配: {full_path}")
            return None
        logger.debug(f"成功读取文件 {full_path}，数据大小: {len(entry)} 字符")
        return entry

    def put_by_key(self, key: str, entry: str) -> None:
        full_path = self.path_for(key)
        dir_name = os.path.dirname(full_path)
        os.makedirs(dir_name, exist_ok=True)
        # 先写临时文件再原子替换，避免读到半个文件
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(json.dumps({"url": key}) + "\n")
                f.write(entry)
            os.replace(tmp_path, full_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug(f"Successfully stored entry to {full_path}")

    def exists(self, key: str) -> bool:
        return os.path.exists(self.path_for(key))

    def delete(self, key: str) -> bool:
        try:
            full_path = self.path_for(key)
            if os.path.exists(full_path):
                os.remove(full_path)
                logger.debug(f"Successfully deleted file: {full_path}")
                return True
            return False
        except OSError as e:
            logger.error(f"Failed to delete entry {key}: {e}")
            return False

    def list_files(self) -> List[str]:
        """列出所有条目文件（相对路径）"""
        files = []
        for root, _, filenames in os.walk(self.local_dir):
            for filename in filenames:
                if filename.endswith(ENTRY_SUFFIX):
                    rel_path = os.path.relpath(os.path.join(root, filename), self.local_dir)
                    files.append(rel_path)
        return files


def read_entry_file(path: str):
    """读取单个条目文件，返回 (url, data_url)。供维护脚本使用。"""
    with open(path, 'r', encoding='utf-8') as f:
        header = json.loads(f.readline())
        return header.get("url"), f.read()
