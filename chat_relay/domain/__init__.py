"""领域层模型与协议。

包含：
- models: GenerationRequest / GenerationResult / WeatherReport。
- conversation: 会话记忆模型及 ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
