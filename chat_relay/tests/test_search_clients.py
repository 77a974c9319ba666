import httpx
import pytest

from chat_relay.domain.exceptions import ApiError, NetworkError, ValidationError
from chat_relay.providers.serpapi_client import SerpApiClient
from chat_relay.providers.weather_client import WeatherClient


class SettingsStub:
    serpapi_key = "s-0123456789"
    serpapi_base_url = "https://serpapi.com/search.json"
    openweather_api_key = "w-0123456789"
    openweather_base_url = "https://api.openweathermap.org/data/2.5"
    geoip_base_url = "https://ipapi.co"
    http_timeout = 1.0


class Resp:
    def __init__(self, data, status_code=200, text=""):
        self._data = data
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        return self._data


def _install_client(monkeypatch, calls, responses):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def get(self, url, **kw):
            calls.append((url, kw.get("params")))
            result = responses.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

    monkeypatch.setattr("httpx.Client", Client)


def test_serpapi_search_sends_params(monkeypatch):
    calls = []
    _install_client(monkeypatch, calls, [Resp({"organic_results": []})])
    data = SerpApiClient(SettingsStub()).search("fastapi", engine="google", hl="en", gl="ke", location=None)

    assert data == {"organic_results": []}
    url, params = calls[0]
    assert url == "https://serpapi.com/search.json"
    assert params == {"q": "fastapi", "engine": "google", "api_key": "s-0123456789", "hl": "en", "gl": "ke"}


def test_serpapi_missing_key():
    class NoKey(SettingsStub):
        serpapi_key = None

    with pytest.raises(ValidationError) as exc:
        SerpApiClient(NoKey()).search("x")
    assert exc.value.message == "Missing SERPAPI_KEY in environment."
    assert exc.value.http_status == 500


def test_serpapi_errors(monkeypatch):
    _install_client(monkeypatch, [], [Resp({}, status_code=401, text="Invalid API key")])
    with pytest.raises(ApiError) as exc:
        SerpApiClient(SettingsStub()).search("x")
    assert exc.value.message == "Invalid API key"

    _install_client(monkeypatch, [], [httpx.ConnectError("refused")])
    with pytest.raises(NetworkError):
        SerpApiClient(SettingsStub()).search("x")


def test_current_weather_found(monkeypatch):
    calls = []
    payload = {
        "cod": 200,
        "name": "Nairobi",
        "weather": [{"description": "light rain"}],
        "main": {"temp": 21.5, "feels_like": 21.0, "humidity": 78},
        "wind": {"speed": 3.6},
    }
    _install_client(monkeypatch, calls, [Resp(payload)])
    report = WeatherClient(SettingsStub()).current_weather("Nairobi, Kenya")

    assert report.to_dict() == {
        "location": "Nairobi",
        "condition": "light rain",
        "temp": 21.5,
        "feels_like": 21.0,
        "humidity": 78,
        "wind_speed": 3.6,
    }
    assert calls[0][1] == {"q": "Nairobi, Kenya", "appid": "w-0123456789", "units": "metric"}


def test_current_weather_not_found(monkeypatch):
    _install_client(monkeypatch, [], [Resp({"cod": "404", "message": "city not found"}, status_code=404)])
    assert WeatherClient(SettingsStub()).current_weather("Atlantis") is None


def test_locate_ip(monkeypatch):
    calls = []
    _install_client(monkeypatch, calls, [Resp({"city": "Mombasa", "country_name": "Kenya"})])
    assert WeatherClient(SettingsStub()).locate_ip("41.90.0.1") == "Mombasa, Kenya"
    assert calls[0][0] == "https://ipapi.co/41.90.0.1/json/"


def test_locate_ip_failures_return_none(monkeypatch):
    _install_client(monkeypatch, [], [httpx.ConnectError("refused"), Resp(ValueError("not json")), Resp({"error": True})])
    client = WeatherClient(SettingsStub())
    assert client.locate_ip("1.1.1.1") is None
    assert client.locate_ip("1.1.1.1") is None
    assert client.locate_ip("1.1.1.1") is None


def test_serpapi_invalid_json(monkeypatch):
    _install_client(monkeypatch, [], [Resp(ValueError("Expecting value")), Resp(["not", "an", "object"])])
    client = SerpApiClient(SettingsStub())
    with pytest.raises(ApiError) as exc:
        client.search("x")
    assert exc.value.message.startswith("Invalid JSON from SerpAPI")
    with pytest.raises(ApiError):
        client.search("x")


def test_current_weather_malformed_payload(monkeypatch):
    payload = {"cod": 200, "name": "Nairobi", "weather": [], "main": {}, "wind": {}}
    _install_client(monkeypatch, [], [Resp(payload), Resp(ValueError("not json"))])
    client = WeatherClient(SettingsStub())
    with pytest.raises(ApiError):
        client.current_weather("Nairobi")
    with pytest.raises(ApiError):
        client.current_weather("Nairobi")
