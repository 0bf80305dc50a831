"""统一的对话与结果数据模型。

本模块定义了 Orchestrator 与各能力客户端之间共享的标准数据结构：

- Message: 会话中展示给用户的一条消息（文本 / 图片 / 音频）。
- ChatMessage: 发给补全端点的 {role, content} 消息。
- ImageOptions: 图片生成的固定参数（均可覆盖）。
- GeneratedMedia: 图片/音频能力返回的自包含 data URL。
- ExchangeResult: 一次交互（Exchange）结束后的结果。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional


# 消息种类（决定 UI 用哪种组件展示）
MessageKind = Literal["text", "image", "audio"]

# 补全端点的消息角色
Role = Literal["system", "user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """会话中的一条消息。

    - content: 文本内容；流式回答过程中会被原地更新。
    - is_user: 是否由用户发出。
    - kind: text / image / audio。
    - media_ref: 图片或音频的 data URL（仅 image/audio 消息）。
    - media_kind: MIME 类型，例如 "image/png"、"audio/mpeg"。

    除了正在流式生成的最后一条助手消息以外，消息一旦定稿就不再修改。
    """

    content: str
    is_user: bool
    timestamp: datetime = field(default_factory=_utcnow)
    kind: MessageKind = "text"
    media_ref: Optional[str] = None
    media_kind: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return self.kind == "image" and bool(self.media_ref)


@dataclass
class ChatMessage:
    """发给补全端点的一条消息。"""

    role: Role
    content: str


@dataclass
class ImageOptions:
    """图片生成参数，默认值与端点推荐值一致。"""

    steps: int = 30
    cfg_scale: float = 5
    enable_refiner: bool = False
    height: int = 1024
    width: int = 1024


@dataclass
class GeneratedMedia:
    """图片/音频能力的输出：自包含的 data URL，不落盘。"""

    data_url: str
    mime_type: str


class ExchangeState(str, Enum):
    """Orchestrator 当前所处的交互阶段。"""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    AWAITING_RESPONSE = "awaiting_response"


class ExchangeStatus(str, Enum):
    """一次交互的最终结果。"""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class ExchangeResult:
    """send / edit 调用的返回值。

    - status: success / cancelled / failed / rejected。
    - capability: 实际路由到的能力（rejected 时可能为空）。
    - message: 成功时新增/更新的助手消息。
    - error: 失败时展示给用户的错误信息。
    - notice: 非错误的状态提示（例如 "Response stopped by user"）。
    - code: 机器可读错误码。
    """

    status: ExchangeStatus
    capability: Optional[str] = None
    message: Optional[Message] = None
    error: Optional[str] = None
    notice: Optional[str] = None
    code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ExchangeStatus.SUCCESS


@dataclass
class VisionRequest:
    """图片理解请求：图片引用（data URL 或 http URL）+ 问题。"""

    image_ref: str
    question: str
