"""协作式取消令牌。

每次 Exchange 创建一个 CancellationToken，并按值传入所有挂起点：
网络请求（guard）与退避等待（sleep）。令牌一旦触发：

- 正在进行的请求被中止，调用方得到 ExchangeCancelledError；
- 触发之后才到达的响应/数据块一律丢弃；
- 令牌不可复位，下一次 Exchange 使用新的令牌。
"""

import asyncio
from typing import Awaitable, TypeVar

from chat_core.domain.exceptions import ExchangeCancelledError


T = TypeVar("T")


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExchangeCancelledError()

    async def sleep(self, seconds: float) -> None:
        """可被取消的等待，用于重试退避。"""

        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return
        raise ExchangeCancelledError()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """运行 awaitable；令牌触发时立即中止它并抛出 ExchangeCancelledError。"""

        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                # 等待被取消的请求完成清理（关闭连接），结果本身丢弃
                await asyncio.gather(task, return_exceptions=True)
        if self._event.is_set():
            if not task.cancelled():
                task.exception()
            raise ExchangeCancelledError()
        return task.result()
