"""Gemini Provider 适配器。

- 非流式: POST {base_url}/models/{model}:generateContent
- 流式:   POST {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证:   x-goog-api-key: <api_key>

请求体只使用公共字段：contents / generationConfig。
"""

from typing import Any, Dict, Iterator, Optional

import httpx

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import (
    ApiError,
    NetworkError,
    UpstreamRejection,
    UpstreamStreamFailure,
    ValidationError,
)
from chat_relay.domain.models import GenerationResult
from chat_relay.providers.registry import GEMINI_CONFIG, ModelConfig


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings, model: Optional[str] = None):
        self._settings = cfg
        self._model = model or getattr(cfg, "default_model", None) or "chat"

    # ---- 非流式 ----

    def generate(self, prompt_text: str) -> GenerationResult:
        return self._generate(prompt_text, self._model)

    def generate_image(self, prompt: str) -> GenerationResult:
        return self._generate(prompt, "image")

    def _generate(self, prompt_text: str, logical_model: str) -> GenerationResult:
        model_cfg = GEMINI_CONFIG.models[logical_model]
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:generateContent"
        payload = self._build_payload(prompt_text, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(url, json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=resp.text,
                http_status=502,
                upstream_status=resp.status_code,
            )
        return self._parse_response(resp.json(), logical_model)

    # ---- 流式 ----

    def stream_generate(self, prompt_text: str) -> Iterator[bytes]:
        model_cfg = GEMINI_CONFIG.models[self._model]
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:streamGenerateContent"
        payload = self._build_payload(prompt_text, model_cfg)
        read_timeout = getattr(self._settings, "stream_read_timeout", None) or self._settings.http_timeout
        timeout = httpx.Timeout(self._settings.http_timeout, read=read_timeout)
        try:
            with httpx.Client(timeout=timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                        raise UpstreamRejection(
                            code="UPSTREAM_REJECTED",
                            message=resp.text,
                            http_status=502,
                            upstream_status=resp.status_code,
                        )
                    for chunk in resp.iter_bytes():
                        if chunk:
                            yield chunk
        except httpx.RequestError as e:
            raise UpstreamStreamFailure(
                code="UPSTREAM_STREAM_FAILURE",
                message=str(e) or type(e).__name__,
                http_status=502,
            )

    # ---- 辅助方法 ----

    def _base_url(self) -> str:
        return getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url

    def _headers(self) -> Dict[str, str]:
        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set", http_status=500)
        return {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    @staticmethod
    def _build_payload(prompt_text: str, model_cfg: ModelConfig) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {}
        if model_cfg.default_temperature is not None:
            generation_config["temperature"] = model_cfg.default_temperature
        if model_cfg.max_tokens:
            generation_config["maxOutputTokens"] = model_cfg.max_tokens
        if model_cfg.response_modalities:
            generation_config["responseModalities"] = list(model_cfg.response_modalities)
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": generation_config,
        }

    def _parse_response(self, data: Dict[str, Any], logical_model: str) -> GenerationResult:
        candidates = data.get("candidates") or []
        first = candidates[0] if candidates else {}
        parts = (first.get("content") or {}).get("parts") or []
        texts = []
        image = None
        for part in parts:
            if part.get("text"):
                texts.append(part["text"])
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and image is None:
                mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                image = f"data:{mime};base64,{inline.get('data', '')}"
        return GenerationResult(
            provider=self.name,
            model=logical_model,
            text="".join(texts),
            image=image,
            finish_reason=first.get("finishReason"),
            raw=data,
        )
