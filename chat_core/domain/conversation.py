from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol
from uuid import uuid4

from .models import Message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Conversation:
    """按时间顺序排列的消息序列；插入顺序即唯一的顺序保证。"""

    id: str = field(default_factory=lambda: f"c-{uuid4().hex}")
    title: str = "New Chat"
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def latest_image(self) -> Optional[Message]:
        """最近一条带图片的消息（生成的或用户上传的）。"""

        for message in reversed(self.messages):
            if message.has_image:
                return message
        return None


class ConversationStore(Protocol):
    """外部会话存储。Orchestrator 只负责把整理好的会话交给它。"""

    def save_conversation(self, conversation: Conversation) -> None:
        ...

    def get_conversation(self, conversation_id: str) -> Conversation:
        ...

    def list_conversations(self) -> List[Conversation]:
        ...

    def delete_conversation(self, conversation_id: str) -> None:
        ...
