"""HTTP 入口（ASGI）。

    uvicorn chat_relay.api.app:app

所有路由都在 /api 下，OPTIONS 一律 200 空响应，
CORS 由 CORSMiddleware 统一处理。
"""

import json
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_relay import __version__
from chat_relay.api import service
from chat_relay.domain.exceptions import BusinessError
from chat_relay.infrastructure.logging.logger import logger

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}

app = FastAPI(title="Chat Relay", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(BusinessError)
async def handle_business_error(request: Request, exc: BusinessError) -> JSONResponse:
    body: Dict[str, Any] = {"error": exc.message}
    if "details" in exc.extra:
        body["details"] = exc.extra["details"]
    if exc.http_status >= 500:
        logger.error(
            "Request failed",
            extra={"extra": {"path": request.url.path, "code": exc.code, "error": exc.message}},
        )
    return JSONResponse(body, status_code=exc.http_status)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exc(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def _read_json(request: Request) -> Dict[str, Any]:
    """请求体不是 JSON 对象时按空对象处理。"""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


@app.post("/api/generate")
async def generate(request: Request) -> StreamingResponse:
    payload = await _read_json(request)
    # 校验在此同步完成，流开始前的错误仍是普通 HTTP 错误
    events = service.open_generate_stream(payload)
    return StreamingResponse(
        events,
        media_type="text/event-stream; charset=utf-8",
        headers=SSE_HEADERS,
    )


@app.post("/api/reply")
async def reply(request: Request) -> JSONResponse:
    payload = await _read_json(request)
    body = await run_in_threadpool(service.generate_reply, payload)
    return JSONResponse(body)


@app.post("/api/search")
async def search(request: Request) -> JSONResponse:
    payload = await _read_json(request)
    body = await run_in_threadpool(service.search, payload)
    return JSONResponse(body)


@app.api_route("/api/news", methods=["GET", "POST"])
async def news(request: Request) -> JSONResponse:
    if request.method == "GET":
        payload: Dict[str, Any] = dict(request.query_params)
    else:
        payload = await _read_json(request)
    body = await run_in_threadpool(service.news_digest, payload, _client_ip(request))
    return JSONResponse(body)


# 不带 CORS 预检头的 OPTIONS 走到这里；放在最后注册，405 的 Allow 头取自前面的业务路由
@app.options("/api/{path:path}")
async def preflight(path: str) -> Response:
    return Response(status_code=200)
