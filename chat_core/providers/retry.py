"""限流重试策略。

规则：
- 只有 RateLimitError（HTTP 429）可以重试，其余错误第一次出现即终止。
- 第 n 次尝试失败后的等待时间 = max(Retry-After 提示, base_delay * 2**n)。
- 最多重试 max_retries 次，之后抛出 MaxRetriesExceededError。
- 退避等待通过 CancellationToken.sleep 进行，可被用户取消。

decide() 是纯函数式的判定，run() 用 tenacity 驱动实际的重试循环，
stop / wait / 放弃 三个环节都以 decide() 的结论为准。
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar, Union

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import MaxRetriesExceededError, RateLimitError
from chat_core.infrastructure.logging.logger import logger


T = TypeVar("T")


@dataclass(frozen=True)
class Retry:
    delay: float


@dataclass(frozen=True)
class GiveUp:
    error: Exception


RetryDecision = Union[Retry, GiveUp]


@dataclass
class RetryState:
    """单次 Exchange 内的重试状态，随 Exchange 结束而丢弃。"""

    attempt_count: int
    next_delay: float


class RetryPolicy:
    def __init__(self, max_retries: int = 3, base_delay: float = 1.0):
        self.max_retries = max_retries
        self.base_delay = base_delay

    @classmethod
    def from_settings(cls, cfg) -> "RetryPolicy":
        return cls(
            max_retries=getattr(cfg, "retry_max_retries", 3),
            base_delay=getattr(cfg, "retry_base_delay", 1.0),
        )

    def decide(self, error: Exception, attempt: int) -> RetryDecision:
        """根据失败原因与已失败的尝试序号（从 1 开始）给出重试/放弃结论。"""

        if not isinstance(error, RateLimitError):
            return GiveUp(error)
        if attempt > self.max_retries:
            return GiveUp(MaxRetriesExceededError(attempts=attempt))
        backoff = self.base_delay * (2 ** attempt)
        hint = error.retry_after or 0.0
        return Retry(max(hint, backoff))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        token: CancellationToken,
        on_retry: Optional[Callable[[RetryState], None]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> T:
        """执行 operation，遇到限流按策略退避重试。"""

        def _decision(rs: RetryCallState) -> RetryDecision:
            return self.decide(rs.outcome.exception(), rs.attempt_number)

        def _stop(rs: RetryCallState) -> bool:
            return isinstance(_decision(rs), GiveUp)

        def _wait(rs: RetryCallState) -> float:
            decision = _decision(rs)
            return decision.delay if isinstance(decision, Retry) else 0.0

        def _give_up(rs: RetryCallState):
            decision = _decision(rs)
            logger.error(
                "Giving up after rate limiting",
                extra={"extra": {"attempts": rs.attempt_number}},
            )
            raise decision.error

        def _before_sleep(rs: RetryCallState) -> None:
            state = RetryState(attempt_count=rs.attempt_number, next_delay=rs.next_action.sleep)
            logger.warning(
                "Rate limited, retrying",
                extra={"extra": {"attempt": state.attempt_count, "delay_seconds": state.next_delay}},
            )
            if on_retry:
                on_retry(state)

        # tenacity 按 fn 是否为协程函数决定是否 await；operation 常是返回协程的 lambda
        async def _attempt() -> T:
            return await operation()

        retrying = AsyncRetrying(
            sleep=sleep or token.sleep,
            stop=_stop,
            wait=_wait,
            retry=retry_if_exception_type(RateLimitError),
            before_sleep=_before_sleep,
            retry_error_callback=_give_up,
        )
        return await retrying(_attempt)
