"""图片生成能力客户端。

单次非流式请求；限流时按 RetryPolicy 退避重试。
响应中的 images[0] 可能是 base64 字符串，也可能是带 image 字段的对象，
两者都没有时视为终止性错误（不重试）。
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import PayloadError
from chat_core.domain.media import wrap_base64
from chat_core.domain.models import GeneratedMedia, ImageOptions
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import HttpCapabilityClient, RetryCallback
from chat_core.providers.registry import IMAGE_CONFIG, ModelConfig
from chat_core.providers.retry import RetryPolicy


class ImageClient(HttpCapabilityClient):
    name = "image"
    failure_label = "Failed to generate image"

    def __init__(
        self,
        cfg,
        retry_policy: Optional[RetryPolicy] = None,
        model_cfg: ModelConfig = IMAGE_CONFIG,
        options: Optional[ImageOptions] = None,
    ):
        super().__init__(cfg, model_cfg, retry_policy)
        self._options = options or model_cfg.options.get("defaults") or ImageOptions()

    async def execute(
        self,
        prompt: str,
        token: CancellationToken,
        options: Optional[ImageOptions] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> GeneratedMedia:
        payload = self.build_payload(prompt, options or self._options)
        logger.info("Generating image", extra={"extra": {"prompt_chars": len(prompt)}})
        data = await self._call(lambda: self._post_json(payload), token, on_retry)
        return self._parse_response(data)

    def build_payload(self, prompt: str, options: ImageOptions) -> Dict[str, Any]:
        opts = asdict(options)
        return {
            "model_name": self._model_cfg.provider_model,
            "prompt": prompt,
            "steps": opts["steps"],
            "cfg_scale": opts["cfg_scale"],
            "enable_refiner": opts["enable_refiner"],
            "height": opts["height"],
            "width": opts["width"],
            "backend": self._model_cfg.options.get("backend", "auto"),
        }

    def _parse_response(self, data: Dict[str, Any]) -> GeneratedMedia:
        mime_type = str(self._model_cfg.options.get("mime_type", "image/png"))
        images = data.get("images") or []
        if not images:
            raise PayloadError(code="NO_IMAGE_DATA", message="No images in response")
        first = images[0]
        if isinstance(first, str) and first:
            return GeneratedMedia(data_url=wrap_base64(first, mime_type), mime_type=mime_type)
        if isinstance(first, dict) and first.get("image"):
            return GeneratedMedia(data_url=wrap_base64(first["image"], mime_type), mime_type=mime_type)
        raise PayloadError(code="NO_IMAGE_DATA", message="No image data found in response")
