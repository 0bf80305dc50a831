from copy import deepcopy
from typing import Dict, List

from chat_core.domain.conversation import Conversation, ConversationStore
from chat_core.domain.exceptions import BusinessError


MAX_CONVERSATIONS = 50


class InMemoryConversationStore(ConversationStore):
    """进程内会话存储：最近保存的在前，最多保留 MAX_CONVERSATIONS 个。

    不保证持久化，仅作为默认实现与测试替身；真正的持久化由外部存储负责。
    """

    def __init__(self, max_conversations: int = MAX_CONVERSATIONS):
        self._max = max_conversations
        self._items: Dict[str, Conversation] = {}

    def save_conversation(self, conversation: Conversation) -> None:
        # 保存快照，避免外部继续修改消息列表时影响已保存内容
        self._items.pop(conversation.id, None)
        self._items[conversation.id] = deepcopy(conversation)
        while len(self._items) > self._max:
            oldest = next(iter(self._items))
            del self._items[oldest]

    def get_conversation(self, conversation_id: str) -> Conversation:
        try:
            return deepcopy(self._items[conversation_id])
        except KeyError:
            raise BusinessError(
                code="CONVERSATION_NOT_FOUND",
                message=f"Conversation {conversation_id} not found",
                http_status=404,
            )

    def list_conversations(self) -> List[Conversation]:
        return [deepcopy(c) for c in reversed(list(self._items.values()))]

    def delete_conversation(self, conversation_id: str) -> None:
        self._items.pop(conversation_id, None)
