"""能力与模型配置。

把"能力"（completion / image / audio / vision）与具体端点、模型 ID、
默认生成参数集中在这里配置，上层只关心能力名，便于后续升级或切换模型。"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from chat_core.domain.models import ImageOptions


COMPLETION = "completion"
IMAGE = "image"
AUDIO = "audio"
VISION = "vision"


@dataclass
class ModelConfig:
    """单个能力的端点与模型配置。"""

    capability: str
    path: str
    provider_model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: float = 0.7
    top_p: float = 0.9
    options: Dict[str, object] = field(default_factory=dict)


COMPLETION_CONFIG = ModelConfig(
    capability=COMPLETION,
    path="/chat/completions",
    provider_model="deepseek-ai/DeepSeek-V3",
    max_tokens=131072,
)

VISION_CONFIG = ModelConfig(
    capability=VISION,
    path="/chat/completions",
    provider_model="Qwen/Qwen2-VL-72B-Instruct",
    max_tokens=2048,
)

IMAGE_CONFIG = ModelConfig(
    capability=IMAGE,
    path="/image/generation",
    provider_model="FLUX.1-dev",
    options={"defaults": ImageOptions(), "backend": "auto", "mime_type": "image/png"},
)

AUDIO_CONFIG = ModelConfig(
    capability=AUDIO,
    path="/audio/generation",
    options={"speed": 1.0, "mime_type": "audio/mpeg"},
)


CAPABILITY_REGISTRY: Mapping[str, ModelConfig] = {
    COMPLETION: COMPLETION_CONFIG,
    IMAGE: IMAGE_CONFIG,
    AUDIO: AUDIO_CONFIG,
    VISION: VISION_CONFIG,
}


def get_model_config(capability: str) -> ModelConfig:
    """根据能力名获取 ModelConfig，名称不区分大小写。"""

    try:
        return CAPABILITY_REGISTRY[capability.lower()]
    except KeyError:
        raise KeyError(f"Unknown capability: {capability!r}")
