"""Provider 抽象接口。

中继与服务层不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- generate: 非流式文本生成，返回 GenerationResult。
- generate_image: 图片生成，结果中 image 为 data URI。
- stream_generate: 流式生成，逐块产出上游原始字节；
  帧解析由 relay.sse 负责，Provider 只管连接的建立与关闭。
"""

from typing import Iterator, Protocol

from chat_relay.domain.models import GenerationResult


class GenerationClient(Protocol):
    """生成类 Provider 客户端协议。"""

    name: str

    def generate(self, prompt_text: str) -> GenerationResult:
        ...

    def generate_image(self, prompt: str) -> GenerationResult:
        ...

    def stream_generate(self, prompt_text: str) -> Iterator[bytes]:
        """打开流式连接并产出原始字节块。

        - 非 2xx 时读取正文并抛 UpstreamRejection；
        - 传输错误或读超时抛 UpstreamStreamFailure；
        - 关闭返回的生成器即关闭上游连接。
        """

        ...
