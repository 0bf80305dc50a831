"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
能力客户端只抛出这里定义的异常（不会把 httpx 原始异常向上透传），
由 Orchestrator 统一转换为会话状态与用户提示。

分类：
- ValidationError: 发请求之前即可判定的错误，不重试。
- RateLimitError: 限流（HTTP 429），唯一可重试的瞬时错误。
- NetworkError / ApiError / PayloadError / MaxRetriesExceededError: 终止性错误。
- ExchangeCancelledError: 用户主动停止，不算失败。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 capability、exchange_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class PayloadError(BusinessError):
    """响应成功但内容缺失或格式不正确（没有图片/音频/分析结果等）。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由 RetryPolicy 负责重试/退避策略。

    retry_after: 服务端通过 Retry-After 给出的建议等待秒数（可能为空）。
    """

    def __init__(
        self,
        code: str = "RATE_LIMIT",
        message: str = "Rate limited",
        http_status: int = 429,
        retry_after: Optional[float] = None,
        **extra,
    ):
        super().__init__(code=code, message=message, http_status=http_status, **extra)
        self.retry_after = retry_after


class MaxRetriesExceededError(BusinessError):
    """限流重试次数耗尽。"""

    def __init__(self, attempts: int, **extra):
        super().__init__(
            code="MAX_RETRIES_EXCEEDED",
            message="Max retries exceeded. Please try again later.",
            http_status=429,
            attempts=attempts,
            **extra,
        )
        self.attempts = attempts


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NoImageAvailableError(ValidationError):
    """/vision 命令需要会话中至少存在一条图片消息。"""

    def __init__(self):
        super().__init__(
            code="NO_IMAGE_AVAILABLE",
            message="Please generate or upload an image first before using /vision.",
        )


class ExchangeCancelledError(BusinessError):
    """用户主动停止了本次交互。不是失败，不应展示错误提示。"""

    def __init__(self, message: str = "Response stopped by user"):
        super().__init__(code="CANCELLED", message=message, http_status=499)
