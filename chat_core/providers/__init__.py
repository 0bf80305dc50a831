"""能力客户端集成层。

该包下的模块负责：
- 定义能力客户端抽象与公共 HTTP 逻辑 (base)。
- 维护能力与端点/模型配置 (registry)。
- 流式解码 (streaming) 与限流重试 (retry)。
- 四种能力的具体实现 (completion / image / audio / vision)。
"""

from dataclasses import dataclass
from typing import Optional

from chat_core.config.settings import settings
from chat_core.infrastructure.storage.response_cache import ResponseCache
from chat_core.providers.audio_client import AudioClient
from chat_core.providers.completion_client import CompletionClient
from chat_core.providers.image_client import ImageClient
from chat_core.providers.registry import AUDIO, COMPLETION, IMAGE, VISION, get_model_config
from chat_core.providers.retry import RetryPolicy
from chat_core.providers.vision_client import VisionClient


@dataclass
class CapabilityClients:
    """一个会话使用的四个能力客户端。"""

    completion: CompletionClient
    image: ImageClient
    audio: AudioClient
    vision: VisionClient


def create_clients(
    cfg=None,
    cache: Optional[ResponseCache] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> CapabilityClients:
    """根据配置创建四个能力客户端，缓存与重试策略在它们之间共享。"""

    cfg = cfg or settings
    policy = retry_policy or RetryPolicy.from_settings(cfg)
    return CapabilityClients(
        completion=CompletionClient(cfg, cache=cache, retry_policy=policy, model_cfg=get_model_config(COMPLETION)),
        image=ImageClient(cfg, retry_policy=policy, model_cfg=get_model_config(IMAGE)),
        audio=AudioClient(cfg, retry_policy=policy, model_cfg=get_model_config(AUDIO)),
        vision=VisionClient(cfg, retry_policy=policy, model_cfg=get_model_config(VISION)),
    )
