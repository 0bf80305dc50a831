"""对外 API 服务模块。

提供简化的函数接口供上层应用调用：默认 Orchestrator 的创建与复用、
发送/编辑消息并返回可直接序列化为 JSON 的字典。
"""

from typing import Any, Dict, List, Optional

from chat_core.agents.orchestrator import ConversationOrchestrator, UpdateCallback
from chat_core.config.credentials import clear_api_key_override, save_api_key_override
from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.media import encode_data_url
from chat_core.domain.models import ExchangeResult, Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.memory_store import InMemoryConversationStore
from chat_core.infrastructure.storage.response_cache import ResponseCache
from chat_core.providers import create_clients


_orchestrator: Optional[ConversationOrchestrator] = None


def create_orchestrator(
    cfg=None,
    store: Optional[ConversationStore] = None,
    on_update: Optional[UpdateCallback] = None,
) -> ConversationOrchestrator:
    """创建一个新的会话 Orchestrator。

    每个会话拥有独立的 ResponseCache（随会话创建、随会话丢弃），
    由四个能力客户端共享。
    """

    cfg = cfg or settings
    cache = ResponseCache(cfg.cache_capacity)
    clients = create_clients(cfg, cache=cache)
    return ConversationOrchestrator(clients, cfg=cfg, store=store, on_update=on_update)


def get_default_orchestrator() -> ConversationOrchestrator:
    """获取默认的 Orchestrator 实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator(store=InMemoryConversationStore())
    return _orchestrator


def reset_default_orchestrator() -> None:
    """结束当前默认会话（取消进行中的交互并丢弃缓存）。"""
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.cancel()
    _orchestrator = None


def set_api_key(api_key: str) -> None:
    """把密钥保存到本地覆盖文件。"""

    save_api_key_override(api_key, settings)
    logger.info("Stored API key override")


def clear_api_key() -> None:
    """删除本地保存的密钥覆盖值。"""

    clear_api_key_override(settings)
    logger.info("Cleared API key override")


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        "content": message.content,
        "is_user": message.is_user,
        "timestamp": message.timestamp.isoformat(),
        "kind": message.kind,
        "media_ref": message.media_ref,
        "media_kind": message.media_kind,
    }


def result_to_dict(result: ExchangeResult) -> Dict[str, Any]:
    return {
        "status": result.status.value,
        "capability": result.capability,
        "message": message_to_dict(result.message) if result.message else None,
        "error": result.error,
        "notice": result.notice,
        "code": result.code,
    }


async def send_message(text: str) -> Dict[str, Any]:
    """发送一条消息。

    Args:
        text: 用户输入，支持 /image、/vision、/audio 前缀

    Returns:
        包含交互状态、新消息、错误/提示信息的字典
    """
    orchestrator = get_default_orchestrator()
    result = await orchestrator.send(text)
    return result_to_dict(result)


async def edit_message(index: int, text: str) -> Dict[str, Any]:
    """编辑第 index 条用户消息并重新提交。"""
    orchestrator = get_default_orchestrator()
    result = await orchestrator.edit_message(index, text)
    return result_to_dict(result)


def cancel_current() -> bool:
    return get_default_orchestrator().cancel()


def attach_image(raw: bytes, mime_type: str = "image/png", caption: str = "") -> Dict[str, Any]:
    """把上传的图片字节作为用户消息加入默认会话，供 /vision 使用。"""
    message = get_default_orchestrator().attach_image(encode_data_url(raw, mime_type), caption=caption)
    return message_to_dict(message)


def list_messages() -> List[Dict[str, Any]]:
    """列出默认会话中的所有消息。"""
    return [message_to_dict(m) for m in get_default_orchestrator().messages]
