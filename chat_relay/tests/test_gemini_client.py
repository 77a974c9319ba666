import httpx
import pytest

from chat_relay.domain.exceptions import (
    ApiError,
    UpstreamRejection,
    UpstreamStreamFailure,
    ValidationError,
)
from chat_relay.providers.gemini_client import GeminiClient


class SettingsStub:
    gemini_api_key = "g-0123456789"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "chat"
    http_timeout = 1.0
    stream_read_timeout = 2.0


class FakeStreamResponse:
    def __init__(self, status_code=200, chunks=(), body=b"", error=None):
        self.status_code = status_code
        self._chunks = list(chunks)
        self._body = body
        self._error = error
        self.text = ""

    def read(self):
        self.text = self._body.decode("utf-8")
        return self._body

    def iter_bytes(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def _install_client(monkeypatch, captured, post_response=None, stream_response=None):
    class Client:
        def __init__(self, *a, **kw):
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, **kw):
            captured["url"] = url
            captured.update(kw)
            return post_response

        def stream(self, method, url, **kw):
            captured["method"] = method
            captured["url"] = url
            captured.update(kw)
            return StreamContext(stream_response)

    monkeypatch.setattr("httpx.Client", Client)


def test_stream_generate_yields_raw_chunks(monkeypatch):
    captured = {}
    resp = FakeStreamResponse(chunks=[b"data: {}\r\n", b"", b"\r\n"])
    _install_client(monkeypatch, captured, stream_response=resp)

    chunks = list(GeminiClient(SettingsStub()).stream_generate("prompt text"))

    assert chunks == [b"data: {}\r\n", b"\r\n"]
    assert captured["method"] == "POST"
    assert captured["url"].endswith("/models/gemini-2.0-flash:streamGenerateContent")
    assert captured["params"] == {"alt": "sse"}
    assert captured["headers"]["x-goog-api-key"] == "g-0123456789"
    assert captured["json"] == {
        "contents": [{"role": "user", "parts": [{"text": "prompt text"}]}],
        "generationConfig": {"temperature": 0.9, "maxOutputTokens": 900},
    }
    timeout = captured["client_kwargs"]["timeout"]
    assert timeout.read == 2.0
    assert timeout.connect == 1.0


def test_stream_generate_rejects_non_success_status(monkeypatch):
    captured = {}
    resp = FakeStreamResponse(status_code=503, body=b"quota exceeded")
    _install_client(monkeypatch, captured, stream_response=resp)

    with pytest.raises(UpstreamRejection) as exc:
        list(GeminiClient(SettingsStub()).stream_generate("p"))
    assert exc.value.message == "quota exceeded"
    assert exc.value.extra["upstream_status"] == 503


def test_stream_generate_wraps_transport_errors(monkeypatch):
    captured = {}
    resp = FakeStreamResponse(chunks=[b"data: {}\n"], error=httpx.ReadTimeout("timed out"))
    _install_client(monkeypatch, captured, stream_response=resp)

    gen = GeminiClient(SettingsStub()).stream_generate("p")
    assert next(gen) == b"data: {}\n"
    with pytest.raises(UpstreamStreamFailure) as exc:
        next(gen)
    assert "timed out" in exc.value.message


def test_stream_generate_requires_api_key(monkeypatch):
    class NoKey(SettingsStub):
        gemini_api_key = None

    with pytest.raises(ValidationError) as exc:
        list(GeminiClient(NoKey()).stream_generate("p"))
    assert exc.value.code == "MISSING_API_KEY"


def test_generate_parses_text_parts(monkeypatch):
    class Resp:
        status_code = 200

        def json(self):
            return {
                "candidates": [
                    {
                        "content": {"parts": [{"text": "Hi"}, {"text": " there"}]},
                        "finishReason": "STOP",
                    }
                ]
            }

    captured = {}
    _install_client(monkeypatch, captured, post_response=Resp())
    res = GeminiClient(SettingsStub()).generate("hello")

    assert res.text == "Hi there"
    assert res.image is None
    assert res.finish_reason == "STOP"
    assert captured["url"].endswith("/models/gemini-2.0-flash:generateContent")


def test_generate_image_returns_data_uri(monkeypatch):
    class Resp:
        status_code = 200

        def json(self):
            return {
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"text": "Here you go"},
                                {"inlineData": {"mimeType": "image/png", "data": "aGVsbG8="}},
                            ]
                        }
                    }
                ]
            }

    captured = {}
    _install_client(monkeypatch, captured, post_response=Resp())
    res = GeminiClient(SettingsStub()).generate_image("draw a lion")

    assert res.image == "data:image/png;base64,aGVsbG8="
    assert res.text == "Here you go"
    assert captured["json"]["generationConfig"] == {"responseModalities": ["TEXT", "IMAGE"]}
    assert "gemini-2.0-flash-preview-image-generation" in captured["url"]


def test_generate_maps_http_errors(monkeypatch):
    class Resp:
        status_code = 400
        text = "bad request"

    _install_client(monkeypatch, {}, post_response=Resp())
    with pytest.raises(ApiError) as exc:
        GeminiClient(SettingsStub()).generate("hello")
    assert exc.value.http_status == 502
    assert exc.value.extra["upstream_status"] == 400
