"""领域层模型与协议。

包含：
- models: Message / ChatMessage / ExchangeResult 等统一模型。
- conversation: 会话模型及 ConversationStore 抽象。
- cancellation: 每次交互使用的取消令牌。
- media: data URL 编解码。
- exceptions: 业务异常类型定义。
"""
