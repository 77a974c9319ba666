"""Chat Relay 顶层包。

为前端聊天组件提供的一组 HTTP 处理器：Gemini 流式/非流式生成、
SerpAPI 搜索、新闻 + 天气摘要，以及按用户落盘的轻量会话记忆。
"""

__version__ = "0.1.0"
