"""Chat Core 顶层包。

该包提供多能力聊天客户端的核心实现：
配置加载、领域模型、能力客户端（流式补全 / 图片 / 音频 / 图片理解）、
命令路由、响应缓存、限流重试以及会话 Orchestrator。
"""

from chat_core.api.service import create_orchestrator, get_default_orchestrator

__all__ = ["create_orchestrator", "get_default_orchestrator"]
