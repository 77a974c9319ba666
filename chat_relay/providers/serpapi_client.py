"""SerpAPI 搜索客户端（网页、图片、新闻）。"""

from typing import Any, Dict

import httpx

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ApiError, NetworkError, ValidationError


class SerpApiClient:
    name = "serpapi"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def search(self, query: str, engine: str = "google", **params: Any) -> Dict[str, Any]:
        """执行一次搜索并返回原始 JSON。"""

        api_key = getattr(self._settings, "serpapi_key", None)
        if not api_key:
            raise ValidationError(
                code="MISSING_API_KEY",
                message="Missing SERPAPI_KEY in environment.",
                http_status=500,
            )
        query_params = {"q": query, "engine": engine, "api_key": api_key}
        query_params.update({k: v for k, v in params.items() if v is not None})
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(self._settings.serpapi_base_url, params=query_params)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=resp.text,
                http_status=502,
                upstream_status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="API_ERROR", message=f"Invalid JSON from SerpAPI: {e}", http_status=502)
        if not isinstance(data, dict):
            raise ApiError(code="API_ERROR", message="Invalid JSON from SerpAPI: not an object", http_status=502)
        return data
