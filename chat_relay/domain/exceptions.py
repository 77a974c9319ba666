"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
HTTP 层统一捕获并转换为 ``{"error": message}`` 响应；
流式中继在响应头已发出后则把它们转换为 ``[ERROR]`` 事件。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 upstream_status、user_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 时抛出。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ClientInputError(ValidationError):
    """调用方请求缺少必填字段或字段非法，不会发起任何上游调用。"""


class UpstreamRejection(ApiError):
    """生成 API 在开始流式输出前返回了非 2xx 状态。message 为响应正文。"""


class UpstreamStreamFailure(NetworkError):
    """流式读取过程中连接失败、断开或读超时。"""


class FrameDecodeError(BusinessError):
    """单个 SSE 帧无法解析。由解码器内部吞掉并计数，不会传给调用方。"""


class StorageIOError(BusinessError):
    """会话记忆读写失败。"""
