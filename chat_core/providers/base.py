"""能力客户端抽象与公共 HTTP 逻辑。

上层 Orchestrator 不直接依赖 httpx，而是依赖此处的 CapabilityClient 协议：

- 每种能力实现一个客户端（completion / image / audio / vision）。
- 负责：构造请求体、发送请求、把 HTTP/网络异常归一化为 domain.exceptions，
  并从响应 JSON 中提取该能力的输出。

HttpCapabilityClient 封装了四个客户端共用的部分：鉴权头、重试、取消、错误归一化。
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, TypeVar

import httpx

from chat_core.config.credentials import resolve_api_key
from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import (
    ApiError,
    NetworkError,
    PayloadError,
    RateLimitError,
    ValidationError,
)
from chat_core.providers.registry import ModelConfig
from chat_core.providers.retry import RetryPolicy, RetryState


T = TypeVar("T")

RetryCallback = Callable[[RetryState], None]


class CapabilityClient(Protocol):
    """能力客户端协议。

    - name: 能力名称，用于日志/统计。
    - execute(request, token): 执行一次调用，返回该能力的输出；
      失败时只抛出 domain.exceptions 中定义的异常。
    """

    name: str

    async def execute(self, request: Any, token: CancellationToken) -> Any:
        ...


def parse_retry_after(headers: Any) -> Optional[float]:
    """解析 Retry-After 头（只支持秒数形式）。"""

    raw = headers.get("Retry-After") if headers is not None else None
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def _error_detail(resp: Any) -> str:
    """尽量从错误响应中取出 error.message，取不到时退回原始文本。"""

    try:
        data = resp.json()
    except ValueError:
        return (getattr(resp, "text", "") or "Unknown error").strip()[:500]
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
        if data.get("message"):
            return str(data["message"])
    return "Unknown error"


class HttpCapabilityClient:
    """四个能力客户端的公共基类。"""

    name = "base"
    failure_label = "Request failed"

    def __init__(self, cfg, model_cfg: ModelConfig, retry_policy: Optional[RetryPolicy] = None):
        self._settings = cfg
        self._model_cfg = model_cfg
        self._retry = retry_policy or RetryPolicy.from_settings(cfg)

    # ---- 请求公共部分 ----

    @property
    def url(self) -> str:
        base = getattr(self._settings, "api_base_url", None) or "https://api.hyperbolic.xyz/v1"
        return f"{base.rstrip('/')}{self._model_cfg.path}"

    def _headers(self) -> Dict[str, str]:
        api_key = resolve_api_key(self._settings)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="API key not set. Please configure your Hyperbolic API key.")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False)

    def _check_status(self, resp: Any) -> None:
        if resp.status_code == 429:
            # 限流错误交给 RetryPolicy 做重试/退避
            raise RateLimitError(
                message=f"{self.failure_label}: rate limited",
                retry_after=parse_retry_after(getattr(resp, "headers", None)),
                capability=self.name,
            )
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=f"{self.failure_label}: {resp.status_code} - {_error_detail(resp)}",
                http_status=resp.status_code,
                capability=self.name,
            )

    async def _post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """发送一次非流式请求并返回 JSON；所有异常都归一化。"""

        headers = self._headers()
        try:
            async with self._http_client() as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=f"{self.failure_label}: {e}", capability=self.name)
        self._check_status(resp)
        try:
            data = resp.json()
        except ValueError:
            raise PayloadError(code="MALFORMED_RESPONSE", message=f"{self.failure_label}: response is not valid JSON")
        if not isinstance(data, dict):
            raise PayloadError(code="MALFORMED_RESPONSE", message=f"{self.failure_label}: unexpected response format")
        return data

    async def _call(
        self,
        operation: Callable[[], Awaitable[T]],
        token: CancellationToken,
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        """在取消令牌保护下执行请求，并按 RetryPolicy 处理限流。"""

        return await self._retry.run(lambda: token.guard(operation()), token, on_retry=on_retry)
