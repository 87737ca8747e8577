import abc
from typing import Optional


class AbstractDurableStore(abc.ABC):
    """持久层接口：按 URL 存取已编码的图片数据（data URL 字符串）。

    实现可以直接抛出异常，由 TieredCache 统一吞掉并记录日志。
    """

    @abc.abstractmethod
    def get_by_key(self, key: str) -> Optional[str]:
        """读取 key 对应的条目，不存在返回 None"""
        pass

    @abc.abstractmethod
    def put_by_key(self, key: str, entry: str) -> None:
        """写入条目，覆盖旧值"""
        pass

    @abc.abstractmethod
    def exists(self, key: str) -> bool:
        """检查条目是否存在"""
        pass

    def delete(self, key: str) -> bool:
        """删除条目（可选方法）"""
        return False


class NoopDurableStore(AbstractDurableStore):
    """占位持久层：
    - put_by_key: 丢弃数据
    - get_by_key: 始终返回 None
    - exists: 始终返回 False
    用于只需要内存缓存的场景。
    """

    def get_by_key(self, key: str) -> Optional[str]:  # type: ignore[override]
        return None

    def put_by_key(self, key: str, entry: str) -> None:  # type: ignore[override]
        return None

    def exists(self, key: str) -> bool:  # type: ignore[override]
        return False
