"""图片理解（vision）能力客户端。

把最近一张图片的引用与用户问题一起发给多模态模型（非流式），
返回 choices[0].message.content 作为分析文本；缺失时为终止性错误。
"""

from typing import Any, Dict, Optional

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import PayloadError
from chat_core.domain.models import VisionRequest
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import HttpCapabilityClient, RetryCallback
from chat_core.providers.registry import VISION_CONFIG, ModelConfig
from chat_core.providers.retry import RetryPolicy


class VisionClient(HttpCapabilityClient):
    name = "vision"
    failure_label = "Vision analysis failed"

    def __init__(self, cfg, retry_policy: Optional[RetryPolicy] = None, model_cfg: ModelConfig = VISION_CONFIG):
        super().__init__(cfg, model_cfg, retry_policy)

    async def execute(
        self,
        request: VisionRequest,
        token: CancellationToken,
        on_retry: Optional[RetryCallback] = None,
    ) -> str:
        payload = self.build_payload(request.image_ref, request.question)
        logger.info("Analyzing image", extra={"extra": {"question_chars": len(request.question)}})
        data = await self._call(lambda: self._post_json(payload), token, on_retry)
        return self._parse_response(data)

    def build_payload(self, image_ref: str, question: str) -> Dict[str, Any]:
        return {
            "model": self._model_cfg.provider_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": question},
                        {"type": "image_url", "image_url": {"url": image_ref, "detail": "high"}},
                    ],
                }
            ],
            "max_tokens": self._model_cfg.max_tokens,
            "temperature": self._model_cfg.temperature,
            "top_p": self._model_cfg.top_p,
            "stream": False,
        }

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        first = choices[0] if choices and isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not content or not isinstance(content, str):
            raise PayloadError(code="NO_ANALYSIS", message="No analysis was generated")
        return content
