"""文本补全（流式）能力客户端。

本模块负责：

1. 先查 ResponseCache，命中则直接返回（不发网络请求）。
2. 未命中时构造流式请求：固定的系统提示词 + 最近一条用户输入。
3. 把响应分块交给 StreamDecoder，按节流间隔回调累计快照。
4. 正常结束后把最终文本写入缓存并返回。

取消时请求被中止，抛出 ExchangeCancelledError（由上层当作"已停止"处理）。
"""

import time
from typing import Callable, Dict, List, Optional

import httpx

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import NetworkError
from chat_core.domain.models import ChatMessage
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.response_cache import ResponseCache
from chat_core.prompts import load_system_prompt
from chat_core.providers.base import HttpCapabilityClient, RetryCallback
from chat_core.providers.registry import COMPLETION_CONFIG, ModelConfig
from chat_core.providers.retry import RetryPolicy
from chat_core.providers.streaming import StreamDecoder


ProgressCallback = Callable[[str], None]


class ProgressThrottle:
    """限制进度回调频率：两次回调之间至少间隔 interval 秒。

    被节流掉的最新快照会暂存，流结束时由 flush() 补发；补发同样受间隔限制，
    间隔未到时丢弃（完整文本由 execute 的返回值给出）。
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._last_emit: Optional[float] = None
        self._pending: Optional[str] = None

    def __call__(self, snapshot: str) -> None:
        if self._callback is None:
            return
        now = self._clock()
        if self._last_emit is None or now - self._last_emit >= self._interval:
            self._last_emit = now
            self._pending = None
            self._callback(snapshot)
        else:
            self._pending = snapshot

    def flush(self) -> None:
        if self._callback is None or self._pending is None:
            return
        snapshot, self._pending = self._pending, None
        now = self._clock()
        if self._last_emit is not None and now - self._last_emit < self._interval:
            return
        self._last_emit = now
        self._callback(snapshot)


class CompletionClient(HttpCapabilityClient):
    """流式文本补全客户端。"""

    name = "completion"
    failure_label = "Completion request failed"

    def __init__(
        self,
        cfg,
        cache: Optional[ResponseCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        model_cfg: ModelConfig = COMPLETION_CONFIG,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(cfg, model_cfg, retry_policy)
        self._cache = cache if cache is not None else ResponseCache(getattr(cfg, "cache_capacity", 100))
        self._clock = clock

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def execute(
        self,
        prompt: str,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> str:
        """返回完整回答文本；流为空时返回空字符串，由调用方决定如何处理。"""

        cached = self._cache.get(prompt)
        if cached is not None:
            if on_progress:
                on_progress(cached)
            return cached

        payload = self.build_payload(prompt)
        interval = getattr(self._settings, "stream_throttle_interval", 0.05)
        throttle = ProgressThrottle(on_progress, interval, self._clock)
        text = await self._call(lambda: self._stream(payload, token, throttle), token, on_retry)
        token.raise_if_cancelled()
        throttle.flush()
        if text:
            self._cache.put(prompt, text)
        return text

    def build_payload(self, prompt: str) -> Dict[str, object]:
        # 只发送系统提示词 + 最近一条用户输入，不带历史
        messages: List[ChatMessage] = [
            ChatMessage(role="system", content=load_system_prompt()),
            ChatMessage(role="user", content=prompt),
        ]
        return {
            "model": self._model_cfg.provider_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": self._model_cfg.max_tokens,
            "temperature": self._model_cfg.temperature,
            "top_p": self._model_cfg.top_p,
            "stream": True,
        }

    async def _stream(self, payload: Dict[str, object], token: CancellationToken, throttle: ProgressThrottle) -> str:
        headers = self._headers()
        decoder = StreamDecoder()
        try:
            async with self._http_client() as client:
                async with client.stream("POST", self.url, json=payload, headers=headers) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                    self._check_status(resp)
                    async for snapshot in decoder.decode(resp.aiter_bytes()):
                        # 取消之后到达的数据块一律丢弃
                        token.raise_if_cancelled()
                        throttle(snapshot)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"{self.failure_label}: {e}", capability=self.name)
        logger.info(
            "Completion stream finished",
            extra={"extra": {"response_chars": len(decoder.text)}},
        )
        return decoder.text
