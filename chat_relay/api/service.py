"""对外 API 服务模块。

提供与 HTTP 框架无关的函数接口：输入为请求 JSON（dict），
输出为响应 JSON 或 SSE 事件迭代器。错误一律以 BusinessError 抛出，
由 HTTP 层映射为 ``{"error": ...}``。
"""

import re
from typing import Any, Dict, Iterator, List, Optional

from chat_relay.config.settings import settings
from chat_relay.domain.conversation import ConversationStore
from chat_relay.domain.exceptions import ApiError, BusinessError, ClientInputError, ValidationError
from chat_relay.domain.models import GenerationRequest
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.infrastructure.storage.json_store import JsonConversationStore
from chat_relay.prompts import build_prompt_text, strip_disclaimers
from chat_relay.providers import create_provider
from chat_relay.providers.base import GenerationClient
from chat_relay.providers.serpapi_client import SerpApiClient
from chat_relay.providers.weather_client import WeatherClient
from chat_relay.relay import StreamRelay
from chat_relay.relay.dialogue import close_turn, open_turn

IMAGE_REQUEST_RE = re.compile(r"\b(draw|image|picture|photo|logo|poster|wallpaper)s?\b", re.IGNORECASE)
IMAGE_SEARCH_RE = re.compile(r"photo|image|picture|pic|poster|wallpaper|logo|design|screenshot", re.IGNORECASE)

SEARCH_RESULT_LIMIT = 5
NEWS_RESULT_LIMIT = 6


_store: Optional[ConversationStore] = None
_client: Optional[GenerationClient] = None
_relay: Optional[StreamRelay] = None
_search_client: Optional[SerpApiClient] = None
_weather_client: Optional[WeatherClient] = None


def get_default_store() -> ConversationStore:
    global _store
    if _store is None:
        _store = JsonConversationStore(root=settings.memory_dir)
    return _store


def get_generation_client() -> GenerationClient:
    global _client
    if _client is None:
        _client = create_provider()
    return _client


def get_default_relay() -> StreamRelay:
    """获取默认的流式中继实例（单例）。"""
    global _relay
    if _relay is None:
        _relay = StreamRelay(
            store=get_default_store(),
            client=get_generation_client(),
            max_context_messages=settings.max_context_messages,
        )
    return _relay


def get_search_client() -> SerpApiClient:
    global _search_client
    if _search_client is None:
        _search_client = SerpApiClient(settings)
    return _search_client


def get_weather_client() -> WeatherClient:
    global _weather_client
    if _weather_client is None:
        _weather_client = WeatherClient(settings)
    return _weather_client


# ---- 生成 ----


def open_generate_stream(payload: Dict[str, Any]) -> Iterator[str]:
    """校验请求并返回 SSE 事件迭代器；缺字段时同步抛 ClientInputError。"""
    return get_default_relay().open(payload)


def generate_reply(payload: Dict[str, Any]) -> Dict[str, Any]:
    """非流式生成。

    prompt 明确要求图片时调用图片模型，返回 ``{"image", "reply"}``，不读写会话记忆；
    否则与流式相同：带上历史调用文本模型，成功后落盘，返回 ``{"reply"}``。
    """
    req = GenerationRequest.from_payload(payload)
    client = get_generation_client()
    if IMAGE_REQUEST_RE.search(req.prompt):
        result = client.generate_image(req.prompt)
        body: Dict[str, Any] = {"reply": strip_disclaimers(result.text)}
        if result.image:
            body["image"] = result.image
        return body

    store = get_default_store()
    record = open_turn(store, req)
    prompt_text = build_prompt_text(record, req.prompt, settings.max_context_messages)
    result = client.generate(prompt_text)
    return {"reply": close_turn(store, record, result.text)}


# ---- 搜索 ----


def search(payload: Dict[str, Any]) -> Dict[str, Any]:
    query = payload.get("query")
    if not isinstance(query, str) or not query:
        raise ClientInputError(code="MISSING_QUERY", message="Missing search query.")

    wants_images = bool(IMAGE_SEARCH_RE.search(query))
    try:
        data = get_search_client().search(
            query,
            engine="google_images" if wants_images else "google",
            location=settings.search_location,
            hl=settings.search_language,
            gl=settings.search_country,
        )
    except ValidationError:
        raise
    except BusinessError as e:
        logger.error("Search error", extra={"extra": {"query": query, "error": e.message}})
        raise ApiError(code="SEARCH_FAILED", message="Search failed", http_status=500, details=e.message)

    results: List[Dict[str, Any]] = []
    if wants_images and data.get("images_results"):
        results = [
            {
                "title": img.get("title") or "Image",
                "thumbnail": img.get("thumbnail"),
                "source": img.get("source"),
                "link": img.get("link"),
            }
            for img in data["images_results"][:SEARCH_RESULT_LIMIT]
        ]
    elif data.get("organic_results"):
        results = [
            {"title": r.get("title"), "snippet": r.get("snippet"), "link": r.get("link")}
            for r in data["organic_results"][:SEARCH_RESULT_LIMIT]
        ]

    return {
        "type": "image" if wants_images else "text",
        "query": query,
        "results": results,
        "source": "SerpAPI",
    }


# ---- 新闻 + 天气 ----


def news_digest(payload: Dict[str, Any], client_ip: Optional[str] = None) -> Dict[str, Any]:
    """最新新闻 + 当地天气 + 一段 markdown 摘要。

    未指定 location 时按 client_ip 自动定位；定位失败不影响新闻部分。
    """
    topic = payload.get("topic") or None
    location = payload.get("location") or None
    try:
        if not location and client_ip:
            location = get_weather_client().locate_ip(client_ip)

        query = f"{topic} news" if topic else "world news today"
        data = get_search_client().search(query, engine="google_news")
        news = [_news_item(n) for n in (data.get("news_results") or [])[:NEWS_RESULT_LIMIT]]

        weather = _weather_for(location) if location else None
    except (BusinessError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        logger.error("Error fetching news/weather", extra={"extra": {"topic": topic, "error": str(e)}})
        raise ApiError(code="NEWS_FAILED", message="Failed to fetch news/weather", http_status=500)

    return {
        "success": True,
        "topic": topic or "world",
        "location": location or "Unknown",
        "news": news,
        "weather": weather,
        "summary": build_news_summary(topic, news, weather),
    }


def _weather_for(location: str) -> Dict[str, Any]:
    """天气查询失败只影响 weather 字段，新闻照常返回。"""
    try:
        report = get_weather_client().current_weather(location)
    except BusinessError as e:
        logger.warning("Weather lookup failed", extra={"extra": {"location": location, "error": e.message}})
        report = None
    return report.to_dict() if report else {"error": "Location not found."}


def _news_item(raw: Dict[str, Any]) -> Dict[str, Any]:
    source = raw.get("source")
    if isinstance(source, dict):
        source = source.get("name")
    return {
        "title": raw.get("title"),
        "link": raw.get("link"),
        "snippet": raw.get("snippet"),
        "date": raw.get("date"),
        "source": source,
        "image": raw.get("thumbnail") or raw.get("image") or None,
    }


def build_news_summary(
    topic: Optional[str],
    news: List[Dict[str, Any]],
    weather: Optional[Dict[str, Any]],
) -> str:
    label = topic or "world"
    if news:
        summary = f"🗞️ Here are the latest {label} headlines:\n\n"
        for i, n in enumerate(news, start=1):
            summary += f"{i}. *{n['title']}* - {n['source'] or 'Unknown source'}\n"
            if n["snippet"]:
                summary += f"   {n['snippet']}\n"
            if n["image"]:
                summary += f"   🖼️ [Image Preview]({n['image']})\n"
            summary += f"   👉 {n['link']}\n\n"
    else:
        summary = f"Hmm, I couldn't find any recent {label} news right now 😕."

    if weather and "error" not in weather:
        summary += (
            f"\n🌦️ Meanwhile, the weather in *{weather['location']}* is **{weather['condition']}**, "
            f"around {weather['temp']}°C (feels like {weather['feels_like']}°C). "
            f"💨 Wind: {weather['wind_speed']} m/s, Humidity: {weather['humidity']}%."
        )
    elif weather:
        summary += f"\n⚠️ {weather['error']}"
    return summary
