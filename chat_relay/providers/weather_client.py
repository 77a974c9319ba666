"""OpenWeatherMap 当前天气 + ipapi.co IP 定位。"""

from typing import Optional

import httpx

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ApiError, NetworkError, ValidationError
from chat_relay.domain.models import WeatherReport
from chat_relay.infrastructure.logging.logger import logger


class WeatherClient:
    name = "openweather"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def current_weather(self, location: str) -> Optional[WeatherReport]:
        """查询 location 的当前天气；地点无法识别时返回 None。"""

        api_key = getattr(self._settings, "openweather_api_key", None)
        if not api_key:
            raise ValidationError(
                code="MISSING_API_KEY",
                message="OPENWEATHER_API_KEY not set",
                http_status=500,
            )
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(
                    f"{self._settings.openweather_base_url}/weather",
                    params={"q": location, "appid": api_key, "units": "metric"},
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        try:
            data = resp.json()
            # 未找到地点时 cod 为字符串 "404"
            if str(data.get("cod")) != "200":
                return None
            return WeatherReport(
                location=data["name"],
                condition=data["weather"][0]["description"],
                temp=data["main"]["temp"],
                feels_like=data["main"]["feels_like"],
                humidity=data["main"]["humidity"],
                wind_speed=data["wind"]["speed"],
            )
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ApiError(code="API_ERROR", message=f"Unexpected weather payload: {e!r}", http_status=502)

    def locate_ip(self, ip: str) -> Optional[str]:
        """把 IP 解析为 "城市, 国家"；失败只记 warning 并返回 None。"""

        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(f"{self._settings.geoip_base_url}/{ip}/json/")
            data = resp.json()
        except (httpx.RequestError, ValueError) as e:
            logger.warning("Could not detect location", extra={"extra": {"ip": ip, "error": str(e)}})
            return None
        if isinstance(data, dict) and data.get("city"):
            return f"{data['city']}, {data.get('country_name')}"
        return None
