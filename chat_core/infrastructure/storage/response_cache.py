"""文本补全响应缓存。

- key 为用户输入原文，精确匹配（不做任何归一化）。
- 容量有上限，超出时淘汰最早插入的一条（FIFO，而不是 LRU：get 不影响顺序）。
- 没有 TTL，也不持久化；生命周期与会话 Orchestrator 相同。

只有单个 Exchange 在进行，因此无需加锁；若将来允许并发交互，
读写需要加互斥。
"""

from collections import OrderedDict
from typing import Optional

from chat_core.infrastructure.logging.logger import logger


class ResponseCache:
    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[str]:
        value = self._entries.get(key)
        if value is not None:
            logger.debug("Response cache hit", extra={"extra": {"cache_size": len(self._entries)}})
        return value

    def put(self, key: str, value: str) -> None:
        if key in self._entries:
            # 覆盖已有 key 不改变其插入位置
            self._entries[key] = value
            return
        if len(self._entries) >= self._capacity:
            self._entries.popitem(last=False)
            logger.debug("Response cache evicted oldest entry", extra={"extra": {"capacity": self._capacity}})
        self._entries[key] = value

    def keys(self) -> list[str]:
        """按插入顺序返回所有 key。"""

        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()
