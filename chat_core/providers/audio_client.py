"""音频生成能力客户端。

请求体只有 text 与 speed 两个字段；成功响应的 audio 字段为 base64 音频，
缺失时为终止性错误。限流重试与其他能力保持一致。
"""

from typing import Any, Dict, Optional

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import PayloadError
from chat_core.domain.media import wrap_base64
from chat_core.domain.models import GeneratedMedia
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import HttpCapabilityClient, RetryCallback
from chat_core.providers.registry import AUDIO_CONFIG, ModelConfig
from chat_core.providers.retry import RetryPolicy


class AudioClient(HttpCapabilityClient):
    name = "audio"
    failure_label = "Failed to generate audio"

    def __init__(self, cfg, retry_policy: Optional[RetryPolicy] = None, model_cfg: ModelConfig = AUDIO_CONFIG):
        super().__init__(cfg, model_cfg, retry_policy)

    async def execute(
        self,
        text: str,
        token: CancellationToken,
        speed: Optional[float] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> GeneratedMedia:
        payload = self.build_payload(text, speed)
        logger.info("Generating audio", extra={"extra": {"text_chars": len(text)}})
        data = await self._call(lambda: self._post_json(payload), token, on_retry)
        audio = data.get("audio")
        if not audio or not isinstance(audio, str):
            raise PayloadError(code="NO_AUDIO_DATA", message="No audio data in response")
        mime_type = str(self._model_cfg.options.get("mime_type", "audio/mpeg"))
        return GeneratedMedia(data_url=wrap_base64(audio, mime_type), mime_type=mime_type)

    def build_payload(self, text: str, speed: Optional[float] = None) -> Dict[str, Any]:
        return {
            "text": text,
            "speed": speed if speed is not None else self._model_cfg.options.get("speed", 1.0),
        }
